'''
The whole BoVW run as a state machine:

    UNLOADED -> DATASET_LOADED -> VOCABULARY_BUILT -> TRAINING_ENCODED -> EVALUATED

Each step needs the output of the one before it. Configuration errors inside a step are re-raised as
StageFailedError so the caller knows which step failed.
'''
import enum
import functools
import logging

import numpy as np

from bovw.config import PipelineConfig
from bovw.distances import make_distance
from bovw.errors import ConfigurationError, StageFailedError, StageOrderError
from bovw.feature_extract import extract_collection_descriptors, make_feature_extractor
from bovw.histogram_creation import encode_collection
from bovw.models import Dataset
from bovw.nearest_classified import NearestHistogramClassifier, evaluate
from bovw.vocabulary import build_vocabulary, pool_descriptors

logger = logging.getLogger(__name__)


class Stage(enum.IntEnum):
    UNLOADED = 0
    DATASET_LOADED = 1
    VOCABULARY_BUILT = 2
    TRAINING_ENCODED = 3
    EVALUATED = 4


def _stage(requires, produces):
    """Check the prerequisite stage, tag configuration errors with the step name, advance on success."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            if self.stage < requires:
                raise StageOrderError(
                    f"{method.__name__}() needs stage {requires.name}, pipeline is at {self.stage.name}")
            if self.stage >= produces:
                raise StageOrderError(f"{method.__name__}() already ran, pipeline is at {self.stage.name}")
            logger.info("--- Starting %s ---", method.__name__)
            try:
                result = method(self, *args, **kwargs)
            except ConfigurationError as e:
                raise StageFailedError(method.__name__, e) from e
            self.stage = produces
            return result
        return wrapper
    return decorator


class BovwPipeline:
    def __init__(self, config=None, detector=None, describer=None, distance=None):
        self.config = (config or PipelineConfig()).validate()
        if detector is None or describer is None:
            default_detector, default_describer = make_feature_extractor(self.config.feature_type,
                                                                         self.config.max_keypoints)
            detector = detector or default_detector
            describer = describer or default_describer
        self.detector = detector
        self.describer = describer
        self.classifier = NearestHistogramClassifier(distance or make_distance(self.config.distance_metric))
        self.random_state = np.random.RandomState(self.config.random_seed)

        self.stage = Stage.UNLOADED
        self.dataset = None
        self.training_descriptors = None
        self.codebook = None
        self.training_histograms = None
        self.test_descriptors = None
        self.test_histograms = None
        self.result = None

    @_stage(requires=Stage.UNLOADED, produces=Stage.DATASET_LOADED)
    def load_dataset(self, dataset: Dataset):
        if len(dataset.training) != dataset.num_categories or len(dataset.test) != dataset.num_categories:
            raise ConfigurationError(
                f"{dataset.num_categories} category names but {len(dataset.training)} training and "
                f"{len(dataset.test)} test categories")
        self.dataset = dataset
        logger.info("Dataset: %d categories, %d training and %d test images", dataset.num_categories,
                    dataset.num_training_images(), dataset.num_test_images())

    @_stage(requires=Stage.DATASET_LOADED, produces=Stage.VOCABULARY_BUILT)
    def build_vocabulary(self):
        self.training_descriptors = extract_collection_descriptors(
            self.dataset.training, self.detector, self.describer, n_jobs=self.config.n_jobs,
            desc="Training descriptors", show_progress=self.config.show_progress)

        pooled = pool_descriptors(self.training_descriptors)
        self.codebook = build_vocabulary(pooled, self.config.vocab_size,
                                         random_state=self.random_state,
                                         max_iter=self.config.max_iter,
                                         backend=self.config.kmeans_backend,
                                         batch_size=self.config.minibatch_size)
        return self.codebook

    @_stage(requires=Stage.VOCABULARY_BUILT, produces=Stage.TRAINING_ENCODED)
    def encode_training(self):
        self.training_histograms = encode_collection(
            self.training_descriptors, self.codebook, self.config.histogram_norm, n_jobs=self.config.n_jobs,
            desc="Training histograms", show_progress=self.config.show_progress)
        self.classifier.fit(self.training_histograms)
        return self.training_histograms

    @_stage(requires=Stage.TRAINING_ENCODED, produces=Stage.EVALUATED)
    def evaluate(self):
        self.test_descriptors = extract_collection_descriptors(
            self.dataset.test, self.detector, self.describer, n_jobs=self.config.n_jobs,
            desc="Test descriptors", show_progress=self.config.show_progress)
        self.test_histograms = encode_collection(
            self.test_descriptors, self.codebook, self.config.histogram_norm, n_jobs=self.config.n_jobs,
            desc="Test histograms", show_progress=self.config.show_progress)
        self.result = evaluate(self.classifier, self.test_histograms, num_categories=self.dataset.num_categories,
                               n_jobs=self.config.n_jobs, show_progress=self.config.show_progress)
        return self.result

    def run(self, dataset: Dataset):
        self.load_dataset(dataset)
        self.build_vocabulary()
        self.encode_training()
        return self.evaluate()
