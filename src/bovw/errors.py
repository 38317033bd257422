'''
Exceptions raised by the BoVW pipeline.

Configuration errors are fatal and abort the run. Degenerate inputs (an image with no keypoints in its region)
are not errors at all - they flow through as empty descriptor sets and all-zero histograms.
'''


class BovwError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BovwError):
    """Run parameters or inputs that make a stage impossible (K too large, empty training set, dim mismatch)."""


class DatasetError(BovwError):
    """The dataset on disk is missing files or cannot be read."""


class StageOrderError(BovwError):
    """A pipeline stage was requested before the stage it depends on."""


class StageFailedError(BovwError):
    def __init__(self, stage, cause):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")
