import numpy as np
import pytest

from bovw.errors import DatasetError
from bovw.storage import load_codebook, load_histograms, save_codebook, save_histograms


def test_codebook_round_trip(tmp_path):
    codebook = np.arange(12, dtype=np.float64).reshape(3, 4)
    path = str(tmp_path / "out" / "codebook_k3.joblib")

    save_codebook(codebook, path)
    loaded = load_codebook(path)

    assert np.array_equal(loaded, codebook)
    assert not loaded.flags.writeable


def test_histograms_round_trip(tmp_path):
    codebook = np.ones((2, 3))
    training = [np.array([[1.0, 0.0], [2.0, 1.0]]), np.array([[0.0, 3.0]])]
    test = [np.array([[1.0, 1.0]]), np.empty((0, 2))]
    path = str(tmp_path / "bovw_histograms.h5")

    save_histograms(path, codebook, training, test, ["faces", "leopards"])
    loaded_codebook, loaded_training, loaded_test, names = load_histograms(path)

    assert names == ["faces", "leopards"]
    assert np.array_equal(loaded_codebook, codebook)
    assert all(np.array_equal(a, b) for a, b in zip(loaded_training, training))
    assert loaded_test[1].shape == (0, 2)


def test_missing_files(tmp_path):
    with pytest.raises(DatasetError):
        load_codebook(str(tmp_path / "nope.joblib"))
    with pytest.raises(DatasetError):
        load_histograms(str(tmp_path / "nope.h5"))
