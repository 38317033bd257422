import os
from dataclasses import dataclass, fields

from bovw.distances import make_distance
from bovw.errors import ConfigurationError

# --- Configuration ---
DATASET_DIR = os.environ.get("BOVW_DATASET_DIR", os.path.join("dataset", "Caltech 101"))
OUTPUT_DIR = os.environ.get("BOVW_OUTPUT_DIR", "bovw_results")

NUM_TRAINING_IMAGES = 40  # Per category
NUM_TEST_IMAGES = 2       # Per category

# --- Features ---
FEATURE_TYPE = 'sift'     # 'sift' (128-D) or 'orb' (32-D)
MAX_KEYPOINTS = 0         # 0 = no limit for SIFT; ORB falls back to 500

# --- K-Means Parameters ---
VOCABULARY_SIZE = 100     # (k) Number of visual words
KMEANS_BACKEND = 'lloyd'  # 'lloyd' or 'minibatch'
MAX_ITER = 100
MINIBATCH_SIZE = 1024 * 4 # Only used by the minibatch backend
RANDOM_SEED = 42

# --- Histograms / Classification ---
HISTOGRAM_NORM = 'none'   # 'none' (raw counts), 'l1' or 'l2'. Must be the same for train and test
DISTANCE_METRIC = 'euclidean'
N_JOBS = 1

FEATURE_TYPES = ('sift', 'orb')
KMEANS_BACKENDS = ('lloyd', 'minibatch')
HISTOGRAM_NORMS = ('none', 'l1', 'l2')


@dataclass
class PipelineConfig:
    """Parameters for one training/evaluation run."""

    vocab_size: int = VOCABULARY_SIZE
    feature_type: str = FEATURE_TYPE
    max_keypoints: int = MAX_KEYPOINTS
    kmeans_backend: str = KMEANS_BACKEND
    max_iter: int = MAX_ITER
    minibatch_size: int = MINIBATCH_SIZE
    random_seed: int = RANDOM_SEED
    histogram_norm: str = HISTOGRAM_NORM
    distance_metric: str = DISTANCE_METRIC
    n_jobs: int = N_JOBS
    show_progress: bool = True

    def validate(self) -> "PipelineConfig":
        if not isinstance(self.vocab_size, int) or self.vocab_size <= 0:
            raise ConfigurationError(f"Vocabulary size must be a positive integer, got {self.vocab_size!r}")
        if self.feature_type not in FEATURE_TYPES:
            raise ConfigurationError(f"Unknown feature type '{self.feature_type}', expected one of {FEATURE_TYPES}")
        if self.kmeans_backend not in KMEANS_BACKENDS:
            raise ConfigurationError(f"Unknown k-means backend '{self.kmeans_backend}', expected one of {KMEANS_BACKENDS}")
        if self.histogram_norm not in HISTOGRAM_NORMS:
            raise ConfigurationError(f"Unknown histogram normalization '{self.histogram_norm}', expected one of {HISTOGRAM_NORMS}")
        if self.max_iter <= 0:
            raise ConfigurationError(f"max_iter must be positive, got {self.max_iter}")
        if self.minibatch_size <= 0:
            raise ConfigurationError(f"minibatch_size must be positive, got {self.minibatch_size}")
        if self.max_keypoints < 0:
            raise ConfigurationError(f"max_keypoints cannot be negative, got {self.max_keypoints}")
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs cannot be 0 (use 1 for sequential, -1 for all cores)")
        make_distance(self.distance_metric)
        return self

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
