'''
Nearest-histogram classification.

No model is trained: every training histogram is kept and a query takes the category of the single closest one.
Ties go to the first training histogram in category-then-image order.
'''
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed
from sklearn.metrics import classification_report, confusion_matrix
from tqdm import tqdm

from bovw.distances import EuclideanDistance
from bovw.errors import ConfigurationError
from bovw.models import EvaluationResult, PredictionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    category: int
    distance: float
    match_image: int  # Index of the closest training histogram within its category


class NearestHistogramClassifier:
    def __init__(self, distance=None):
        self.distance = distance if distance is not None else EuclideanDistance()
        self._histograms: Optional[np.ndarray] = None
        self._categories: Optional[np.ndarray] = None
        self._image_indices: Optional[np.ndarray] = None

    @property
    def num_training(self) -> int:
        return 0 if self._histograms is None else self._histograms.shape[0]

    def fit(self, training_histograms: Sequence[np.ndarray]) -> "NearestHistogramClassifier":
        """
        Remember the training set.

        Args:
            training_histograms: one (n_images, K) array per category, indexed by category
        """
        rows, categories, image_indices = [], [], []
        for cat_idx, histograms in enumerate(training_histograms):
            histograms = np.asarray(histograms, dtype=np.float64)
            if histograms.size == 0:
                continue
            if histograms.ndim != 2:
                raise ConfigurationError(f"Training histograms of category {cat_idx} must be 2D, got {histograms.shape}")
            rows.append(histograms)
            categories.extend([cat_idx] * histograms.shape[0])
            image_indices.extend(range(histograms.shape[0]))

        if rows and len({r.shape[1] for r in rows}) != 1:
            raise ConfigurationError("Training histograms have different lengths")

        self._histograms = np.vstack(rows) if rows else np.empty((0, 0), dtype=np.float64)
        self._categories = np.array(categories, dtype=np.int64)
        self._image_indices = np.array(image_indices, dtype=np.int64)
        logger.info("Classifier holds %d training histograms from %d categories",
                    self.num_training, len(training_histograms))
        return self

    def classify(self, query) -> Prediction:
        if self.num_training == 0:
            raise ConfigurationError("Cannot classify: the training histogram set is empty")

        query = np.asarray(query, dtype=np.float64).ravel()
        if query.shape[0] != self._histograms.shape[1]:
            raise ConfigurationError(
                f"Query histogram has length {query.shape[0]}, training histograms have length {self._histograms.shape[1]}")

        distances = self.distance.pairwise(query, self._histograms)
        best = int(np.argmin(distances))  # argmin returns the first minimum
        return Prediction(category=int(self._categories[best]),
                          distance=float(distances[best]),
                          match_image=int(self._image_indices[best]))

    def predict(self, queries) -> np.ndarray:
        return np.array([self.classify(q).category for q in np.atleast_2d(queries)], dtype=np.int64)


def evaluate(classifier: NearestHistogramClassifier, test_histograms: Sequence[np.ndarray], num_categories=None,
             n_jobs=1, show_progress=True) -> EvaluationResult:
    """
    Classify every test histogram and compare against its true category.

    Records come back in category-then-image order whatever n_jobs is.
    """
    positions = [(c, i) for c, histograms in enumerate(test_histograms) for i in range(len(histograms))]
    if num_categories is None:
        num_categories = len(test_histograms)

    if n_jobs == 1:
        predictions = [classifier.classify(test_histograms[c][i])
                       for c, i in tqdm(positions, desc="Classifying test images", disable=not show_progress)]
    else:
        predictions = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(classifier.classify)(test_histograms[c][i])
            for c, i in tqdm(positions, desc="Classifying test images", disable=not show_progress)
        )

    records = [PredictionRecord(true_category=c, image_index=i, predicted_category=p.category, distance=p.distance)
               for (c, i), p in zip(positions, predictions)]
    result = EvaluationResult(records=records)

    if not records:
        logger.warning("No test images to evaluate; accuracy reported as 0.0")
        result.confusion = np.zeros((num_categories, num_categories), dtype=np.int64)
        return result

    result.confusion = confusion_matrix(result.y_true, result.y_pred, labels=np.arange(num_categories))
    logger.info("Accuracy: %d/%d = %.4f", result.num_correct, result.total, result.accuracy)
    return result


def classification_report_text(result: EvaluationResult, category_names: List[str]) -> str:
    if not result.records:
        return "No test images."
    return classification_report(result.y_true, result.y_pred, labels=np.arange(len(category_names)),
                                 target_names=category_names, zero_division=0)
