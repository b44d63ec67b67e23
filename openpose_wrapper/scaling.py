"""
Scale Converter
Pure conversions between coordinate frames (input, network output, output
resolution) and between value ranges ([0,1], [-1,1], [0,255]).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

import cv2
import numpy as np

from .errors import InvalidScaleMode


class ScaleMode(Enum):
    """
    Combined scale mode enumeration accepted by the public constructor.
    The first three members are coordinate frames, the last three are
    value ranges. Use `CoordinateMode` / `ValueRangeMode` internally.
    """
    INPUT_RESOLUTION = 0
    NET_OUTPUT_RESOLUTION = 1
    OUTPUT_RESOLUTION = 2
    ZERO_TO_ONE = 3
    PLUS_MINUS_ONE = 4
    UNSIGNED_CHAR = 5


class CoordinateMode(Enum):
    INPUT_RESOLUTION = 0
    NET_OUTPUT_RESOLUTION = 1
    OUTPUT_RESOLUTION = 2


class ValueRangeMode(Enum):
    ZERO_TO_ONE = 3
    PLUS_MINUS_ONE = 4
    UNSIGNED_CHAR = 5


Size = Tuple[int, int]


@dataclass(frozen=True)
class ReferenceSizes:
    """(width, height) of each coordinate frame."""

    input_size: Size
    net_output_size: Size
    output_size: Size

    def __post_init__(self):
        for size in (self.input_size, self.net_output_size, self.output_size):
            if len(size) != 2 or size[0] <= 0 or size[1] <= 0:
                raise ValueError(f"Reference sizes must be positive (width, height), got {size}")

    def size_of(self, mode: CoordinateMode) -> Size:
        if mode is CoordinateMode.INPUT_RESOLUTION:
            return self.input_size
        if mode is CoordinateMode.NET_OUTPUT_RESOLUTION:
            return self.net_output_size
        return self.output_size


def as_coordinate_mode(mode: Union[ScaleMode, CoordinateMode, str]) -> CoordinateMode:
    """Map a combined ScaleMode (or its name) onto its coordinate member, or fail."""
    mode = _resolve_mode(mode)
    if isinstance(mode, CoordinateMode):
        return mode
    if isinstance(mode, ScaleMode) and mode.value < 3:
        return CoordinateMode(mode.value)
    raise InvalidScaleMode(f"{mode} is not a coordinate mode")


def as_value_range_mode(mode: Union[ScaleMode, ValueRangeMode, str]) -> ValueRangeMode:
    """Map a combined ScaleMode (or its name) onto its value-range member, or fail."""
    mode = _resolve_mode(mode)
    if isinstance(mode, ValueRangeMode):
        return mode
    if isinstance(mode, ScaleMode) and mode.value >= 3:
        return ValueRangeMode(mode.value)
    raise InvalidScaleMode(f"{mode} is not a value-range mode")


def convert_coordinates(points: np.ndarray, from_mode: CoordinateMode,
                        to_mode: CoordinateMode, sizes: ReferenceSizes) -> np.ndarray:
    """
    Rescale x/y coordinates between two coordinate frames.

    Args:
        points: Array whose last dimension starts with (x, y); extra trailing
            entries (e.g. the keypoint score) are left untouched
        from_mode: Frame the points are currently in
        to_mode: Frame to convert to
        sizes: Width/height of every frame

    Returns:
        New float32 array of the same shape
    """
    points = np.array(points, dtype=np.float32, copy=True)
    if from_mode is to_mode or points.size == 0:
        return points
    if points.shape[-1] < 2:
        raise ValueError(f"Coordinate arrays need at least 2 trailing entries, got shape {points.shape}")

    src_w, src_h = sizes.size_of(from_mode)
    dst_w, dst_h = sizes.size_of(to_mode)
    points[..., 0] *= float(dst_w) / float(src_w)
    points[..., 1] *= float(dst_h) / float(src_h)
    return points


def _to_unit_range(values: np.ndarray, mode: ValueRangeMode) -> np.ndarray:
    if mode is ValueRangeMode.PLUS_MINUS_ONE:
        return (values + 1.0) / 2.0
    if mode is ValueRangeMode.UNSIGNED_CHAR:
        return values / 255.0
    return values


def _from_unit_range(values: np.ndarray, mode: ValueRangeMode) -> np.ndarray:
    values = np.clip(values, 0.0, 1.0)
    if mode is ValueRangeMode.PLUS_MINUS_ONE:
        return values * 2.0 - 1.0
    if mode is ValueRangeMode.UNSIGNED_CHAR:
        return np.clip(np.rint(values * 255.0), 0.0, 255.0)
    return values


def convert_values(values: np.ndarray, from_mode: ValueRangeMode,
                   to_mode: ValueRangeMode) -> np.ndarray:
    """Linearly remap dense values from one range to another (clamped to the target range)."""
    values = np.array(values, dtype=np.float32, copy=True)
    if from_mode is to_mode:
        return values
    return _from_unit_range(_to_unit_range(values, from_mode), to_mode).astype(np.float32)


def _resolve_mode(mode):
    if isinstance(mode, str):
        try:
            return ScaleMode[mode.upper()]
        except KeyError:
            raise InvalidScaleMode(f"Unknown scale mode name: {mode!r}") from None
    return mode


def convert(value, from_mode, to_mode, reference_sizes: ReferenceSizes = None):
    """
    Generic entry point accepting the combined ScaleMode enumeration.

    Both modes must belong to the same family. Coordinate conversions need
    `reference_sizes`. Modes may be given by name. Mixing families raises
    InvalidScaleMode.
    """
    from_mode = _resolve_mode(from_mode)
    to_mode = _resolve_mode(to_mode)

    from_is_coord = isinstance(from_mode, CoordinateMode) or (
        isinstance(from_mode, ScaleMode) and from_mode.value < 3)
    to_is_coord = isinstance(to_mode, CoordinateMode) or (
        isinstance(to_mode, ScaleMode) and to_mode.value < 3)

    if from_is_coord != to_is_coord:
        raise InvalidScaleMode(f"Cannot convert between {from_mode} and {to_mode}")

    if from_is_coord:
        if reference_sizes is None:
            raise InvalidScaleMode("Coordinate conversion requires reference sizes")
        return convert_coordinates(value, as_coordinate_mode(from_mode),
                                   as_coordinate_mode(to_mode), reference_sizes)

    result = convert_values(value, as_value_range_mode(from_mode), as_value_range_mode(to_mode))
    if np.isscalar(value) or np.ndim(value) == 0:
        return float(result)
    return result


def resize_stack(stack: np.ndarray, size: Size) -> np.ndarray:
    """Resize every channel of an (H, W, C) stack to size (width, height)."""
    stack = np.asarray(stack, dtype=np.float32)
    if stack.shape[1] == size[0] and stack.shape[0] == size[1]:
        return stack.copy()
    channels = [
        cv2.resize(np.ascontiguousarray(stack[:, :, c]), tuple(size), interpolation=cv2.INTER_CUBIC)
        for c in range(stack.shape[2])
    ]
    if not channels:
        return np.zeros((size[1], size[0], 0), dtype=np.float32)
    return np.stack(channels, axis=-1).astype(np.float32)
