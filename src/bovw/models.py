from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Region:
    """
    Axis-aligned region of interest in pixel coordinates (0-based top-left corner).

    A point (px, py) is inside iff x <= px < x + width and y <= py < y + height.
    """

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def whole_image(cls, image: np.ndarray) -> "Region":
        height, width = image.shape[:2]
        return cls(0, 0, width, height)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, point: Tuple[float, float]) -> bool:
        px, py = point
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height

    def as_int_rect(self) -> Tuple[int, int, int, int]:
        """(x1, y1, x2, y2) integer corners for drawing."""
        return (int(self.x), int(self.y), int(self.x + self.width), int(self.y + self.height))


@dataclass
class LabeledImage:
    """One image of a labeled collection with its region of interest."""

    image: np.ndarray  # BGR (H, W, 3) or grayscale (H, W)
    region: Optional[Region] = None


@dataclass
class Dataset:
    """
    Everything the core consumes from the dataset collaborator.

    training / test are indexed by category: training[c][i] is image i of category c.
    """

    category_names: List[str]
    training: List[List[LabeledImage]]
    test: List[List[LabeledImage]]

    @property
    def num_categories(self) -> int:
        return len(self.category_names)

    def num_training_images(self) -> int:
        return sum(len(images) for images in self.training)

    def num_test_images(self) -> int:
        return sum(len(images) for images in self.test)


@dataclass(frozen=True)
class PredictionRecord:
    true_category: int
    image_index: int
    predicted_category: int
    distance: float

    @property
    def correct(self) -> bool:
        return self.true_category == self.predicted_category


@dataclass
class EvaluationResult:
    records: List[PredictionRecord] = field(default_factory=list)
    confusion: Optional[np.ndarray] = None  # (num_categories, num_categories), rows = true label

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def num_correct(self) -> int:
        return sum(1 for record in self.records if record.correct)

    @property
    def accuracy(self) -> float:
        if not self.records:
            return 0.0
        return self.num_correct / self.total

    @property
    def y_true(self) -> np.ndarray:
        return np.array([record.true_category for record in self.records], dtype=np.int64)

    @property
    def y_pred(self) -> np.ndarray:
        return np.array([record.predicted_category for record in self.records], dtype=np.int64)
