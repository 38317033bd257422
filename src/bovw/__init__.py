#Code by Christopher Kaelin, 2025
# This code is licensed under the MIT License - see the LICENSE file for details.
'''
This package provides a basic implementation of the Bag of Visual Words (BoVW) model for image classification.
It includes functions for creating a visual vocabulary, extracting features from images, and classifying images
by nearest-histogram lookup against every training image.
'''
from bovw.errors import (
    BovwError,
    ConfigurationError,
    DatasetError,
    StageOrderError,
    StageFailedError,
)
from bovw.models import Region, LabeledImage, Dataset, PredictionRecord, EvaluationResult
from bovw.config import PipelineConfig
from bovw.feature_extract import (
    OpenCVDetector,
    OpenCVDescriber,
    filter_keypoints,
    make_feature_extractor,
    extract_collection_descriptors,
)
from bovw.vocabulary import build_vocabulary, pool_descriptors
from bovw.histogram_creation import generate_bovw_histogram, encode_collection
from bovw.distances import EuclideanDistance, MetricDistance, make_distance
from bovw.nearest_classified import NearestHistogramClassifier, Prediction, evaluate
from bovw.pipeline import BovwPipeline, Stage

__all__ = [
    "BovwError",
    "ConfigurationError",
    "DatasetError",
    "StageOrderError",
    "StageFailedError",
    "Region",
    "LabeledImage",
    "Dataset",
    "PredictionRecord",
    "EvaluationResult",
    "PipelineConfig",
    "OpenCVDetector",
    "OpenCVDescriber",
    "filter_keypoints",
    "make_feature_extractor",
    "extract_collection_descriptors",
    "build_vocabulary",
    "pool_descriptors",
    "generate_bovw_histogram",
    "encode_collection",
    "EuclideanDistance",
    "MetricDistance",
    "make_distance",
    "NearestHistogramClassifier",
    "Prediction",
    "evaluate",
    "BovwPipeline",
    "Stage",
]
