"""
OpenPose Wrapper - Orchestration of body, face and hand keypoint detection
Handles stage ordering, keypoint grouping, scale conversion and rendering
"""

from .batch import detect_all, process_folder
from .body_models import BODY_MODELS, BodyModel, get_body_model
from .config import WrapperConfig
from .engines import DetectorEngine, MediaPipeEngine, OpenCVDnnEngine
from .errors import (
    ConfigurationError,
    FeatureDisabled,
    HeatmapsDisabled,
    InferenceFailure,
    InvalidScaleMode,
    OpenPoseWrapperError,
    PrecedingStageMissing
)
from .keypoints import KeypointType
from .rendering import render_keypoints
from .scaling import CoordinateMode, ReferenceSizes, ScaleMode, ValueRangeMode, convert
from .state import DetectionState
from .wrapper import OpenPoseWrapper

__all__ = [
    'OpenPoseWrapper',
    'WrapperConfig',
    'KeypointType',
    'ScaleMode',
    'CoordinateMode',
    'ValueRangeMode',
    'ReferenceSizes',
    'convert',
    'DetectionState',
    'DetectorEngine',
    'OpenCVDnnEngine',
    'MediaPipeEngine',
    'BodyModel',
    'BODY_MODELS',
    'get_body_model',
    'render_keypoints',
    'detect_all',
    'process_folder',
    'OpenPoseWrapperError',
    'ConfigurationError',
    'PrecedingStageMissing',
    'FeatureDisabled',
    'HeatmapsDisabled',
    'InvalidScaleMode',
    'InferenceFailure'
]

__version__ = '1.0.0'
