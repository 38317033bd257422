import numpy as np
import pytest

from bovw.errors import ConfigurationError
from bovw.histogram_creation import encode_collection, generate_bovw_histogram

CODEBOOK = np.array([[0.0, 0.0], [10.0, 10.0]])


def test_counts_nearest_codewords():
    descriptors = np.array([[1, 1], [9, 9], [0, 2]], dtype=np.float32)
    histogram = generate_bovw_histogram(descriptors, CODEBOOK)
    assert np.array_equal(histogram, [2.0, 1.0])


@pytest.mark.parametrize("descriptors", [None, np.empty((0, 2), dtype=np.float32), np.empty((0, 0))])
def test_no_descriptors_give_all_zero_histogram_of_length_k(descriptors):
    histogram = generate_bovw_histogram(descriptors, CODEBOOK)
    assert histogram.shape == (2,)
    assert not histogram.any()


def test_l1_histogram_holds_frequencies():
    descriptors = np.array([[1, 1], [9, 9], [0, 2]], dtype=np.float32)
    histogram = generate_bovw_histogram(descriptors, CODEBOOK, normalization='l1')
    assert np.allclose(histogram, [2 / 3, 1 / 3])


def test_l2_histogram_has_unit_length():
    descriptors = np.array([[1, 1], [9, 9], [0, 2]], dtype=np.float32)
    histogram = generate_bovw_histogram(descriptors, CODEBOOK, normalization='l2')
    assert np.isclose(np.linalg.norm(histogram), 1.0)


def test_normalizing_an_empty_histogram_keeps_zeros():
    histogram = generate_bovw_histogram(np.empty((0, 2)), CODEBOOK, normalization='l1')
    assert not histogram.any()


def test_re_encoding_is_bit_identical():
    rng = np.random.RandomState(3)
    codebook = rng.rand(16, 128)
    descriptors = rng.rand(200, 128).astype(np.float32)

    first = generate_bovw_histogram(descriptors, codebook)
    second = generate_bovw_histogram(descriptors, codebook)

    assert first.shape == (16,)
    assert first.sum() == 200
    assert np.array_equal(first, second)


def test_dimension_mismatch_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        generate_bovw_histogram(np.ones((3, 5)), CODEBOOK)


def test_unknown_normalization():
    with pytest.raises(ConfigurationError):
        generate_bovw_histogram(np.ones((3, 2)), CODEBOOK, normalization='max')


def test_encode_collection_preallocates_one_row_per_image():
    slots = [
        [np.array([[0.0, 1.0]]), np.empty((0, 2))],
        [np.array([[10.0, 10.0], [9.0, 9.0]])],
    ]

    histograms = encode_collection(slots, CODEBOOK, show_progress=False)

    assert [h.shape for h in histograms] == [(2, 2), (1, 2)]
    assert np.array_equal(histograms[0], [[1, 0], [0, 0]])
    assert np.array_equal(histograms[1], [[0, 2]])


def test_threaded_encoding_matches_sequential():
    rng = np.random.RandomState(0)
    slots = [[rng.rand(rng.randint(0, 20), 2) * 10 for _ in range(5)] for _ in range(3)]

    sequential = encode_collection(slots, CODEBOOK, show_progress=False)
    threaded = encode_collection(slots, CODEBOOK, n_jobs=2, show_progress=False)

    for seq, thr in zip(sequential, threaded):
        assert np.array_equal(seq, thr)
