'''
Loader for a Caltech 101 style dataset laid out as

    <root>/Categories.txt                              one category name per line
    <root>/Images/<category>/image_0001.jpg
    <root>/Annotations/<category>/annotation_0001.txt  "col row width height", 1-based top-left

The same random selection of image numbers is used for every category; the first num_training_images
of it go to training, the rest to test.
'''
import logging
import os

import cv2
import numpy as np
from sklearn.utils import check_random_state
from tqdm import tqdm

from bovw.errors import DatasetError
from bovw.models import Dataset, LabeledImage, Region

logger = logging.getLogger(__name__)

CATEGORIES_FILE = "Categories.txt"
IMAGES_SUBDIR = "Images"
ANNOTATIONS_SUBDIR = "Annotations"


def read_category_names(dataset_path):
    categories_file = os.path.join(dataset_path, CATEGORIES_FILE)
    if not os.path.exists(categories_file):
        raise DatasetError(f"Cannot find {CATEGORIES_FILE} in {dataset_path}")
    with open(categories_file, 'r') as f:
        names = [line.strip() for line in f if line.strip()]
    if not names:
        raise DatasetError(f"{categories_file} does not list any category")
    return names


def parse_annotation(annotation_path):
    """
    Region from an annotation file, or None when the file holds no usable rectangle.

    Each line is "col row width height" with a 1-based top-left corner; the last valid line wins.
    """
    if not os.path.exists(annotation_path):
        raise DatasetError(f"Error loading annotation in {annotation_path}")

    region = None
    with open(annotation_path, 'r') as f:
        for line in f:
            parts = line.split()
            if len(parts) != 4:
                continue
            try:
                tl_col, tl_row, width, height = (int(p) for p in parts)
            except ValueError:
                continue
            region = Region(tl_col - 1, tl_row - 1, width, height)

    if region is None or region.is_empty:
        return None
    return region


def load_labeled_image(image_path, annotation_path):
    image = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if image is None:
        raise DatasetError(f"Error loading image in {image_path}")

    region = parse_annotation(annotation_path)
    if region is None:
        logger.warning("No valid rectangle in %s; using the whole image", annotation_path)
        region = Region.whole_image(image)
    return LabeledImage(image=image, region=region)


def load_caltech101(dataset_path, num_training_images, num_test_images, random_state=None, show_progress=True):
    if num_training_images <= 0 or num_test_images < 0:
        raise DatasetError(
            f"Invalid split: {num_training_images} training and {num_test_images} test images per category")

    logger.info("Loading Caltech 101 dataset from: %s", dataset_path)
    category_names = read_category_names(dataset_path)
    num_images_per_category = num_training_images + num_test_images

    random_state = check_random_state(random_state)
    indices = random_state.permutation(np.arange(1, num_images_per_category + 1))

    training = [[] for _ in category_names]
    test = [[] for _ in category_names]
    image_dir = os.path.join(dataset_path, IMAGES_SUBDIR)
    annotation_dir = os.path.join(dataset_path, ANNOTATIONS_SUBDIR)

    for cat_idx, category in enumerate(tqdm(category_names, desc="Loading categories", disable=not show_progress)):
        for file_idx, shuffled_idx in enumerate(indices):
            image_path = os.path.join(image_dir, category, f"image_{shuffled_idx:04d}.jpg")
            annotation_path = os.path.join(annotation_dir, category, f"annotation_{shuffled_idx:04d}.txt")
            labeled_image = load_labeled_image(image_path, annotation_path)
            if file_idx < num_training_images:
                training[cat_idx].append(labeled_image)
            else:
                test[cat_idx].append(labeled_image)

    logger.info("Dataset successfully loaded: %d categories, %d images per category",
                len(category_names), num_images_per_category)
    return Dataset(category_names=category_names, training=training, test=test)
