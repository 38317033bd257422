import numpy as np
import pytest

from bovw.errors import ConfigurationError
from bovw.vocabulary import _recompute_centroids, build_vocabulary, pool_descriptors


def _blobs(seed=0, per_cluster=30, dims=8):
    rng = np.random.RandomState(seed)
    centers = np.array([np.full(dims, 0.0), np.full(dims, 20.0), np.r_[np.full(dims // 2, 20.0), np.zeros(dims // 2)]])
    return np.vstack([c + rng.normal(scale=0.5, size=(per_cluster, dims)) for c in centers]).astype(np.float32)


def _sorted_rows(array):
    return array[np.lexsort(array.T[::-1])]


def test_codebook_has_k_finite_rows_of_descriptor_dimension():
    descriptors = _blobs()
    codebook = build_vocabulary(descriptors, 5, random_state=0)

    assert codebook.shape == (5, 8)
    assert np.all(np.isfinite(codebook))


def test_codebook_is_read_only():
    codebook = build_vocabulary(_blobs(), 3, random_state=0)
    with pytest.raises(ValueError):
        codebook[0, 0] = 1.0


def test_same_seed_gives_identical_codebook():
    descriptors = _blobs()
    first = build_vocabulary(descriptors, 4, random_state=7)
    second = build_vocabulary(descriptors, 4, random_state=np.random.RandomState(7))
    assert np.array_equal(first, second)


def test_global_numpy_random_state_is_untouched():
    np.random.seed(123)
    expected = np.random.rand()
    np.random.seed(123)
    build_vocabulary(_blobs(), 3, random_state=1)
    assert np.random.rand() == expected


def test_separated_clusters_give_exact_centroids():
    descriptors = np.array([[0, 0], [0, 1], [10, 10], [10, 11]], dtype=np.float32)
    for seed in range(5):
        codebook = build_vocabulary(descriptors, 2, random_state=seed)
        assert np.allclose(_sorted_rows(codebook), [[0, 0.5], [10, 10.5]])


def test_empty_cluster_is_reseeded_from_farthest_point():
    descriptors = np.array([[0, 0], [0, 0], [0, 0], [5, 5]], dtype=np.float64)
    labels = np.array([0, 0, 0, 0])
    distances = np.linalg.norm(descriptors, axis=1)

    centroids = _recompute_centroids(descriptors, labels, distances, 2)

    assert np.allclose(centroids[0], [1.25, 1.25])
    assert np.allclose(centroids[1], [5, 5])


def test_duplicate_points_never_produce_nan_centroids():
    descriptors = np.array([[0, 0]] * 3 + [[5, 5]], dtype=np.float32)
    for seed in range(10):
        codebook = build_vocabulary(descriptors, 2, random_state=seed)
        assert np.all(np.isfinite(codebook))
        assert np.allclose(_sorted_rows(codebook), [[0, 0], [5, 5]])


def test_too_few_descriptors_is_a_configuration_error():
    descriptors = np.random.RandomState(0).rand(5, 128)
    with pytest.raises(ConfigurationError, match="10 visual words"):
        build_vocabulary(descriptors, 10, random_state=0)


@pytest.mark.parametrize("vocab_size", [0, -3, 2.5])
def test_invalid_vocabulary_size(vocab_size):
    with pytest.raises(ConfigurationError):
        build_vocabulary(_blobs(), vocab_size)


def test_non_finite_descriptors_are_rejected():
    descriptors = _blobs()
    descriptors[3, 2] = np.nan
    with pytest.raises(ConfigurationError):
        build_vocabulary(descriptors, 3)


def test_unknown_backend():
    with pytest.raises(ConfigurationError):
        build_vocabulary(_blobs(), 3, backend='spectral')


def test_minibatch_backend_returns_k_centroids():
    codebook = build_vocabulary(_blobs(), 3, random_state=0, backend='minibatch', batch_size=32)
    assert codebook.shape == (3, 8)
    assert np.all(np.isfinite(codebook))


def test_pool_descriptors_skips_empty_images():
    slots = [[np.ones((2, 3)), np.empty((0, 3))], [np.zeros((1, 3))]]
    pooled = pool_descriptors(slots)
    assert pooled.shape == (3, 3)
    assert pooled.dtype == np.float32


def test_pooling_nothing_then_building_fails():
    pooled = pool_descriptors([[np.empty((0, 128))]])
    with pytest.raises(ConfigurationError):
        build_vocabulary(pooled, 1)
