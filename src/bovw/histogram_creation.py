# This file is the third part of the BoVW pipeline. We already extracted the features and created the vocabulary.
# Now we create the histogram for each image using that vocabulary.
import logging
from typing import List

import numpy as np
from joblib import Parallel, delayed
from sklearn.metrics import pairwise_distances_argmin
from sklearn.preprocessing import normalize
from tqdm import tqdm

from bovw.errors import ConfigurationError

logger = logging.getLogger(__name__)


def generate_bovw_histogram(image_descriptors, codebook, normalization='none'):
    """
    Count how many of the image's descriptors fall nearest to each codeword.

    normalization: 'none' keeps raw counts, 'l1' gives frequencies, 'l2' unit length.
    Zero descriptors give an all-zero histogram of length K.
    """
    vocab_size = codebook.shape[0]

    if image_descriptors is None or image_descriptors.shape[0] == 0:
        return np.zeros(vocab_size, dtype=np.float64)

    if image_descriptors.ndim != 2 or image_descriptors.shape[1] != codebook.shape[1]:
        raise ConfigurationError(
            f"Descriptor dimension {image_descriptors.shape[1:]} does not match codebook dimension {codebook.shape[1]}")

    if image_descriptors.dtype != np.float64:
        image_descriptors = image_descriptors.astype(np.float64)

    visual_words = pairwise_distances_argmin(image_descriptors, codebook)

    histogram = np.bincount(visual_words, minlength=vocab_size).astype(np.float64)

    if normalization == 'none':
        return histogram
    if normalization not in ('l1', 'l2'):
        raise ConfigurationError(f"Unknown histogram normalization '{normalization}'")
    if np.sum(histogram) > 0:
        histogram = normalize(histogram.reshape(1, -1), norm=normalization)[0]

    return histogram


def encode_collection(descriptor_slots: List[List[np.ndarray]], codebook, normalization='none', n_jobs=1,
                      desc="Encoding histograms", show_progress=True) -> List[np.ndarray]:
    """
    Histograms for every image of a collection: one (n_images, K) array per category.

    The arrays are allocated before encoding and row i of category c is written only by image (c, i).
    """
    vocab_size = codebook.shape[0]
    histograms = [np.zeros((len(images), vocab_size), dtype=np.float64) for images in descriptor_slots]
    positions = [(c, i) for c, images in enumerate(descriptor_slots) for i in range(len(images))]

    if n_jobs == 1:
        rows = [generate_bovw_histogram(descriptor_slots[c][i], codebook, normalization)
                for c, i in tqdm(positions, desc=desc, disable=not show_progress)]
    else:
        rows = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(generate_bovw_histogram)(descriptor_slots[c][i], codebook, normalization)
            for c, i in tqdm(positions, desc=desc, disable=not show_progress)
        )

    for (c, i), row in zip(positions, rows):
        histograms[c][i] = row

    logger.info("%s: %d histograms of length %d", desc, len(positions), vocab_size)
    return histograms
