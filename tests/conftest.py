import os
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from bovw.feature_extract import filter_keypoints
from bovw.models import Dataset, LabeledImage, Region


class PointDetector:
    """
    Detector for synthetic 'images' that are (n, 2 + D) arrays: x, y, then the descriptor.
    """

    def detect(self, image, region=None):
        keypoints = [SimpleNamespace(pt=(float(row[0]), float(row[1])), descriptor=row[2:]) for row in image]
        return filter_keypoints(keypoints, region)


class PointDescriber:
    descriptor_size = 2

    def describe(self, image, keypoints):
        if not keypoints:
            return np.empty((0, self.descriptor_size), dtype=np.float32)
        return np.array([kp.descriptor for kp in keypoints], dtype=np.float32)


def point_image(center, n=4, spread=0.5, seed=0):
    """n points at distinct locations whose descriptors sit around `center`."""
    rng = np.random.RandomState(seed)
    locations = np.column_stack([np.arange(n) * 2.0, np.arange(n) * 2.0])
    descriptors = np.asarray(center, dtype=np.float64) + rng.uniform(-spread, spread, size=(n, 2))
    return np.hstack([locations, descriptors])


@pytest.fixture
def point_strategies():
    return PointDetector(), PointDescriber()


@pytest.fixture
def toy_dataset():
    """Two categories whose descriptors cluster around (0, 0) and (10, 10)."""
    whole = Region(0, 0, 100, 100)
    training = [
        [LabeledImage(point_image((0, 0), seed=s), whole) for s in range(3)],
        [LabeledImage(point_image((10, 10), seed=10 + s), whole) for s in range(3)],
    ]
    test = [
        [LabeledImage(point_image((0, 0), seed=20), whole)],
        [LabeledImage(point_image((10, 10), seed=30), whole)],
    ]
    return Dataset(category_names=["zeros", "tens"], training=training, test=test)


def textured_image(seed, size=96):
    """Blurred noise: gives SIFT and ORB plenty of keypoints."""
    rng = np.random.RandomState(seed)
    image = rng.randint(0, 256, size=(size, size, 3), dtype=np.uint8)
    return cv2.GaussianBlur(image, (5, 5), 1.5)


@pytest.fixture
def noise_image():
    return textured_image(0, size=128)


@pytest.fixture
def make_caltech_dir(tmp_path):
    """Factory writing a Caltech 101 style directory tree."""

    def _make(categories=("faces", "leopards"), num_images=3, annotation="5 6 20 30\n", textured=False,
              extra_category_lines=("",)):
        root = tmp_path / "Caltech 101"
        root.mkdir(exist_ok=True)
        with open(root / "Categories.txt", "w") as f:
            for name in categories:
                f.write(name + "\n")
            for line in extra_category_lines:
                f.write(line + "\n")
        for cat_idx, name in enumerate(categories):
            image_dir = root / "Images" / name
            annotation_dir = root / "Annotations" / name
            image_dir.mkdir(parents=True, exist_ok=True)
            annotation_dir.mkdir(parents=True, exist_ok=True)
            for number in range(1, num_images + 1):
                if textured:
                    image = textured_image(100 * cat_idx + number)
                else:
                    # Flat grey whose level identifies the image number
                    image = np.full((40, 50, 3), 40 * number, dtype=np.uint8)
                cv2.imwrite(os.path.join(str(image_dir), f"image_{number:04d}.jpg"), image)
                with open(annotation_dir / f"annotation_{number:04d}.txt", "w") as f:
                    f.write(annotation)
        return str(root)

    return _make


@pytest.fixture
def make_textured():
    return textured_image
