"""
Error taxonomy for the OpenPose wrapper.
Every failure is raised synchronously at the call that caused it.
"""


class OpenPoseWrapperError(Exception):
    """Base class for all wrapper errors."""


class ConfigurationError(OpenPoseWrapperError, ValueError):
    """Invalid construction parameters. The wrapper is unusable afterwards."""


class PrecedingStageMissing(OpenPoseWrapperError, RuntimeError):
    """A stage was requested before the stage it depends on ran for the current frame."""


class FeatureDisabled(OpenPoseWrapperError, RuntimeError):
    """The requested keypoint type was not enabled at construction."""


class HeatmapsDisabled(FeatureDisabled):
    """Heatmaps were requested but heatmap download is disabled."""


class InvalidScaleMode(OpenPoseWrapperError, AssertionError):
    """A coordinate mode was mixed with a value-range mode (programming error)."""


class InferenceFailure(OpenPoseWrapperError, RuntimeError):
    """The underlying network runtime failed or got a malformed input."""
