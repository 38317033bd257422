'''
Saving and reloading run outputs so histograms do not have to be recomputed.

The codebook goes to a joblib file; the codebook plus all histograms go to one HDF5 file.
'''
import logging
import os

import h5py
import joblib
import numpy as np

from bovw.errors import DatasetError

logger = logging.getLogger(__name__)


def save_codebook(codebook, path):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    joblib.dump(np.asarray(codebook), path)
    logger.info("Saved codebook %s to %s", codebook.shape, path)


def load_codebook(path):
    if not os.path.exists(path):
        raise DatasetError(f"Codebook file not found: {path}")
    codebook = np.array(joblib.load(path), dtype=np.float64)
    codebook.setflags(write=False)
    return codebook


def save_histograms(path, codebook, training_histograms, test_histograms, category_names):
    """Write codebook, per-category train/test histograms and the category names to HDF5."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with h5py.File(path, 'w') as hf:
        hf.create_dataset('codebook', data=np.asarray(codebook))
        hf.attrs['category_names'] = [name.encode('utf-8') for name in category_names]
        for group_name, histograms in (('train', training_histograms), ('test', test_histograms)):
            group = hf.create_group(group_name)
            for cat_idx, category_histograms in enumerate(histograms):
                group.create_dataset(str(cat_idx), data=np.asarray(category_histograms))
    logger.info("Saved histograms for %d categories to %s", len(category_names), path)


def load_histograms(path):
    """Returns (codebook, training_histograms, test_histograms, category_names)."""
    if not os.path.exists(path):
        raise DatasetError(f"Histogram file not found: {path}")
    with h5py.File(path, 'r') as hf:
        codebook = hf['codebook'][:]
        category_names = [n.decode('utf-8') if isinstance(n, bytes) else str(n) for n in hf.attrs['category_names']]
        training = [hf['train'][str(c)][:] for c in range(len(category_names))]
        test = [hf['test'][str(c)][:] for c in range(len(category_names))]
    return codebook, training, test, category_names
