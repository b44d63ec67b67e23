"""
Wrapper configuration: immutable construction parameters, their validation
and the mapping of the OpenPose log level onto the logging module.
"""

import itertools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from .body_models import BodyModel, get_body_model
from .errors import ConfigurationError, InvalidScaleMode
from .scaling import ScaleMode, ValueRangeMode, as_value_range_mode

PACKAGE_LOGGER = "openpose_wrapper"

# OpenPose priority convention: messages at or above the level are shown
LOG_LEVEL_SILENT = 255

_instance_ids = itertools.count(1)

BACKENDS = ("opencv_dnn", "mediapipe")

Size = Tuple[int, int]


def _check_size(name: str, size) -> Size:
    try:
        width, height = (int(v) for v in size)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a (width, height) pair, got {size!r}")
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"{name} must be positive, got {width}x{height}")
    return width, height


def _check_log_level(log_level) -> int:
    try:
        level = int(log_level)
    except (TypeError, ValueError):
        raise ConfigurationError(f"log_level must be an integer, got {log_level!r}")
    if not 0 <= level <= LOG_LEVEL_SILENT:
        raise ConfigurationError(f"log_level must be within 0..255, got {level}")
    return level


@dataclass(frozen=True)
class WrapperConfig:
    """
    Construction-time configuration. Immutable; build a new wrapper to change it.

    Args:
        net_pose_size: Body pose network input size (width, height)
        net_face_hands_size: Face and hand networks input size (width, height)
        output_size: Keypoints and heatmaps are rescaled to this size
        model: Body pose model name (COCO, MPI, MPI_4_layers)
        model_folder: OpenPose models folder (pose/, face/, hand/)
        log_level: OpenPose log level; 255 is silent, lower is more verbose
        download_heatmaps: Copy heatmaps/PAFs out of the network after each pose pass
        heatmap_scale_mode: Value range of returned heatmaps
        with_face: Enable the face network
        with_hands: Enable the hand network
        backend: Inference backend used when no engine is injected
        use_cuda: Ask the backend for CUDA execution
    """

    net_pose_size: Size = (320, 240)
    net_face_hands_size: Size = (128, 128)
    output_size: Size = (640, 480)
    model: str = "COCO"
    model_folder: str = "models/"
    log_level: int = LOG_LEVEL_SILENT
    download_heatmaps: bool = False
    heatmap_scale_mode: Union[ScaleMode, ValueRangeMode, str] = ScaleMode.ZERO_TO_ONE
    with_face: bool = True
    with_hands: bool = True
    backend: str = "opencv_dnn"
    use_cuda: bool = False

    def validate(self) -> "WrapperConfig":
        """Check every field and return a normalized copy."""
        net_pose_size = _check_size("net_pose_size", self.net_pose_size)
        net_face_hands_size = _check_size("net_face_hands_size", self.net_face_hands_size)
        output_size = _check_size("output_size", self.output_size)
        body_model = get_body_model(self.model)

        if not Path(self.model_folder).is_dir():
            raise ConfigurationError(f"Model folder not found: {self.model_folder}")

        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown backend {self.backend!r}. Choose one of: {', '.join(BACKENDS)}"
            )

        try:
            scale_mode = as_value_range_mode(self.heatmap_scale_mode)
        except InvalidScaleMode as e:
            raise ConfigurationError(f"Invalid heatmap scale mode: {e}") from e

        log_level = _check_log_level(self.log_level)

        return WrapperConfig(
            net_pose_size=net_pose_size,
            net_face_hands_size=net_face_hands_size,
            output_size=output_size,
            model=body_model.name,
            model_folder=str(self.model_folder),
            log_level=log_level,
            download_heatmaps=bool(self.download_heatmaps),
            heatmap_scale_mode=scale_mode,
            with_face=bool(self.with_face),
            with_hands=bool(self.with_hands),
            backend=self.backend,
            use_cuda=bool(self.use_cuda),
        )

    @property
    def body_model(self) -> BodyModel:
        return get_body_model(self.model)


def logging_level(log_level: int) -> int:
    """Translate an OpenPose log level into a logging module level."""
    if log_level >= LOG_LEVEL_SILENT:
        return logging.CRITICAL + 1
    if log_level <= 1:
        return logging.DEBUG
    if log_level == 2:
        return logging.INFO
    if log_level == 3:
        return logging.WARNING
    return logging.ERROR


def instance_logger(log_level: int) -> logging.Logger:
    """
    A child of the package logger carrying one wrapper's log level.
    Records still propagate to the handlers of the package and root loggers.
    """
    logger = logging.getLogger(f"{PACKAGE_LOGGER}.wrapper.instance{next(_instance_ids)}")
    logger.setLevel(logging_level(log_level))
    return logger
