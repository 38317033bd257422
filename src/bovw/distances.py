"""Distance strategies for comparing BoVW histograms."""

import numpy as np
from sklearn.metrics import pairwise_distances
from sklearn.metrics.pairwise import PAIRWISE_DISTANCE_FUNCTIONS

from bovw.errors import ConfigurationError


class EuclideanDistance:
    """Plain L2 norm of the difference. Identical vectors are exactly 0 apart."""

    name = 'euclidean'

    def __call__(self, a, b) -> float:
        return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))

    def pairwise(self, query, candidates) -> np.ndarray:
        diff = np.asarray(candidates, dtype=np.float64) - np.asarray(query, dtype=np.float64)
        return np.linalg.norm(diff, axis=1)


class MetricDistance:
    """Any metric understood by sklearn.metrics.pairwise_distances ('cityblock', 'cosine', ...)."""

    def __init__(self, metric):
        self.name = metric
        self.metric = metric

    def __call__(self, a, b) -> float:
        return float(self.pairwise(a, np.asarray(b).reshape(1, -1))[0])

    def pairwise(self, query, candidates) -> np.ndarray:
        query = np.asarray(query, dtype=np.float64).reshape(1, -1)
        return pairwise_distances(query, np.asarray(candidates, dtype=np.float64), metric=self.metric)[0]


def make_distance(metric='euclidean'):
    if metric == 'euclidean':
        return EuclideanDistance()
    if metric in PAIRWISE_DISTANCE_FUNCTIONS and metric != 'precomputed':
        return MetricDistance(metric)
    raise ConfigurationError(
        f"Unknown distance metric '{metric}', expected one of {sorted(PAIRWISE_DISTANCE_FUNCTIONS)}")
