# This file is the second part of the BoVW pipeline. Descriptors from every training image are pooled
# and clustered into K visual words; the cluster centers are the codebook.
import logging
from typing import List

import numpy as np
from sklearn.cluster import MiniBatchKMeans
from sklearn.metrics import pairwise_distances_argmin_min
from sklearn.utils import check_random_state

from bovw.errors import ConfigurationError

logger = logging.getLogger(__name__)


def pool_descriptors(descriptor_slots: List[List[np.ndarray]]) -> np.ndarray:
    """Stack the descriptors of all categories and images into one (N, D) matrix."""
    current_descriptors = [d for images in descriptor_slots for d in images if d is not None and d.shape[0] > 0]
    if not current_descriptors:
        return np.empty((0, 0), dtype=np.float32)
    return np.vstack(current_descriptors).astype(np.float32)


def _check_inputs(descriptors, vocab_size):
    if isinstance(vocab_size, bool) or not isinstance(vocab_size, (int, np.integer)) or vocab_size <= 0:
        raise ConfigurationError(f"Vocabulary size must be a positive integer, got {vocab_size!r}")
    descriptors = np.asarray(descriptors, dtype=np.float64)
    if descriptors.ndim != 2:
        raise ConfigurationError(f"Descriptors must be a 2D array (N, D), got shape {descriptors.shape}")
    if descriptors.shape[0] < vocab_size:
        raise ConfigurationError(
            f"Cannot build {vocab_size} visual words from only {descriptors.shape[0]} training descriptors")
    if not np.all(np.isfinite(descriptors)):
        raise ConfigurationError("Training descriptors contain NaN or infinite values")
    return descriptors


def _recompute_centroids(descriptors, labels, distances, vocab_size):
    n_dims = descriptors.shape[1]
    counts = np.bincount(labels, minlength=vocab_size)
    sums = np.zeros((vocab_size, n_dims), dtype=np.float64)
    np.add.at(sums, labels, descriptors)

    centroids = np.zeros_like(sums)
    filled = counts > 0
    centroids[filled] = sums[filled] / counts[filled, None]

    empty_clusters = np.flatnonzero(~filled)
    if empty_clusters.size:
        # Farthest points first; each point reseeds at most one cluster
        farthest = np.argsort(-distances, kind="stable")
        for cluster_idx, point_idx in zip(empty_clusters, farthest):
            centroids[cluster_idx] = descriptors[point_idx]
        logger.debug("Reseeded %d empty clusters from the farthest points", empty_clusters.size)
    return centroids


def _lloyd(descriptors, vocab_size, random_state, max_iter):
    init_indices = random_state.choice(descriptors.shape[0], size=vocab_size, replace=False)
    centroids = descriptors[init_indices].copy()

    labels = None
    for iteration in range(1, max_iter + 1):
        new_labels, distances = pairwise_distances_argmin_min(descriptors, centroids)
        if labels is not None and np.array_equal(new_labels, labels):
            logger.debug("K-Means converged after %d iterations", iteration - 1)
            break
        labels = new_labels
        centroids = _recompute_centroids(descriptors, labels, distances, vocab_size)
        logger.debug("Iteration %d: inertia %.4f", iteration, float(np.sum(distances ** 2)))
    else:
        logger.info("K-Means stopped at the iteration cap (%d) before assignments stabilized", max_iter)
    return centroids


def _minibatch(descriptors, vocab_size, random_state, max_iter, batch_size):
    kmeans = MiniBatchKMeans(n_clusters=vocab_size,
                             random_state=random_state,
                             batch_size=batch_size,
                             n_init=1,
                             max_iter=max_iter,
                             compute_labels=False)
    kmeans.fit(descriptors)
    return np.asarray(kmeans.cluster_centers_, dtype=np.float64)


def build_vocabulary(descriptors, vocab_size, random_state=None, max_iter=100, backend='lloyd', batch_size=4096):
    """
    Cluster the pooled training descriptors into `vocab_size` visual words.

    random_state: None, an int seed or a np.random.RandomState. The global numpy random state is never used,
    so a fixed seed gives the same codebook on every call.
    backend: 'lloyd' (plain k-means, empty clusters reseeded from the farthest points) or 'minibatch'
    (sklearn MiniBatchKMeans).

    Returns a read-only (vocab_size, D) float64 array.
    """
    descriptors = _check_inputs(descriptors, vocab_size)
    random_state = check_random_state(random_state)

    logger.info("Building vocabulary: k=%d from %d descriptors of dimension %d (%s)",
                vocab_size, descriptors.shape[0], descriptors.shape[1], backend)

    if backend == 'lloyd':
        codebook = _lloyd(descriptors, vocab_size, random_state, max_iter)
    elif backend == 'minibatch':
        codebook = _minibatch(descriptors, vocab_size, random_state, max_iter, batch_size)
    else:
        raise ConfigurationError(f"Unknown k-means backend '{backend}' (expected 'lloyd' or 'minibatch')")

    if codebook.shape != (vocab_size, descriptors.shape[1]) or not np.all(np.isfinite(codebook)):
        raise ConfigurationError(f"K-Means produced a malformed codebook of shape {codebook.shape}")

    codebook.setflags(write=False)
    logger.info("Vocabulary shape: %s", codebook.shape)
    return codebook
