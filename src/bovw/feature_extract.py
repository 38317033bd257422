'''
Keypoint detection and descriptor computation for the BoVW pipeline.

SIFT and ORB are both available through OpenCV. Detection and description are split into two
independently swappable objects: a detector returns the keypoints that fall inside an image's
region of interest, a describer turns those keypoints into a (n, D) float32 matrix.
'''

import logging
from typing import List, Optional, Protocol, Sequence

import cv2
import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from bovw.errors import ConfigurationError
from bovw.models import LabeledImage, Region

logger = logging.getLogger(__name__)

ORB_DEFAULT_FEATURES = 500


class Detector(Protocol):
    def detect(self, image: np.ndarray, region: Optional[Region]) -> list: ...


class Describer(Protocol):
    descriptor_size: int

    def describe(self, image: np.ndarray, keypoints: Sequence) -> np.ndarray: ...


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def _create_engine(feature_type: str, max_keypoints: int = 0):
    if feature_type == 'sift':
        return cv2.SIFT_create(nfeatures=max_keypoints)
    if feature_type == 'orb':
        return cv2.ORB_create(nfeatures=max_keypoints or ORB_DEFAULT_FEATURES)
    raise ConfigurationError(f"Unknown feature type '{feature_type}' (expected 'sift' or 'orb')")


def filter_keypoints(keypoints: Sequence, region: Optional[Region]) -> list:
    """
    Keep the keypoints whose location lies inside the region, in their original order.

    Bounds are half-open: x <= px < x + width and y <= py < y + height.
    region=None keeps everything.
    """
    if region is None:
        return list(keypoints)
    return [kp for kp in keypoints if region.contains(kp.pt)]


class OpenCVDetector:
    """Runs an OpenCV detector on the grayscale image and drops keypoints outside the region."""

    def __init__(self, feature_type: str = 'sift', max_keypoints: int = 0):
        self.feature_type = feature_type
        self._engine = _create_engine(feature_type, max_keypoints)

    def detect(self, image: np.ndarray, region: Optional[Region] = None) -> list:
        keypoints = self._engine.detect(to_gray(image), None)
        return filter_keypoints(keypoints, region)


class OpenCVDescriber:
    """Computes SIFT (128 x float32) or ORB (32 x uint8, cast to float32) descriptors for given keypoints."""

    def __init__(self, feature_type: str = 'sift', max_keypoints: int = 0):
        self.feature_type = feature_type
        self._engine = _create_engine(feature_type, max_keypoints)
        self.descriptor_size = int(self._engine.descriptorSize())

    def empty(self) -> np.ndarray:
        return np.empty((0, self.descriptor_size), dtype=np.float32)

    def describe(self, image: np.ndarray, keypoints: Sequence) -> np.ndarray:
        if len(keypoints) == 0:
            return self.empty()

        kept, descriptors = self._engine.compute(to_gray(image), list(keypoints))
        if descriptors is None:
            return self.empty()
        if len(kept) != len(keypoints):
            # ORB cannot describe keypoints too close to the border
            logger.debug("%s dropped %d of %d keypoints during description",
                         self.feature_type.upper(), len(keypoints) - len(kept), len(keypoints))
        return descriptors.astype(np.float32)


def make_feature_extractor(feature_type: str = 'sift', max_keypoints: int = 0):
    """Matching (detector, describer) pair for an OpenCV feature type."""
    return OpenCVDetector(feature_type, max_keypoints), OpenCVDescriber(feature_type, max_keypoints)


def extract_image_descriptors(labeled_image: LabeledImage, detector: Detector, describer: Describer) -> np.ndarray:
    keypoints = detector.detect(labeled_image.image, labeled_image.region)
    return describer.describe(labeled_image.image, keypoints)


def extract_collection_descriptors(collection: List[List[LabeledImage]], detector: Detector, describer: Describer,
                                   n_jobs: int = 1, desc: str = "Extracting descriptors",
                                   show_progress: bool = True) -> List[List[np.ndarray]]:
    """
    Descriptor matrix for every image of a labeled collection.

    The result has one slot per (category, image) allocated up front, so result[c][i] always belongs to
    collection[c][i] whatever order the workers finish in. Threads are used because OpenCV feature
    objects cannot be pickled.
    """
    slots = [[None] * len(images) for images in collection]
    positions = [(cat_idx, img_idx) for cat_idx, images in enumerate(collection) for img_idx in range(len(images))]

    if n_jobs == 1:
        results = [extract_image_descriptors(collection[c][i], detector, describer)
                   for c, i in tqdm(positions, desc=desc, disable=not show_progress)]
    else:
        results = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(extract_image_descriptors)(collection[c][i], detector, describer)
            for c, i in tqdm(positions, desc=desc, disable=not show_progress)
        )

    empty_count = 0
    for (cat_idx, img_idx), descriptors in zip(positions, results):
        if descriptors.shape[0] == 0:
            empty_count += 1
            logger.warning("No keypoints inside the region for category %d, image %d; histogram will be all zeros",
                           cat_idx, img_idx)
        slots[cat_idx][img_idx] = descriptors

    logger.info("%s: %d images, %d descriptors, %d images without keypoints", desc, len(positions),
                sum(d.shape[0] for d in results), empty_count)
    return slots
