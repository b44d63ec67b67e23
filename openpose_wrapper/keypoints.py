"""
Keypoint Tensor Model
Canonical NxKx3 keypoint arrays (x, y, score) and the grouping rules for
pose, face and the two hand groups.
"""

from enum import Enum
from typing import List, Optional, Sequence

import numpy as np


class KeypointType(Enum):
    POSE = 0
    FACE = 1
    HAND = 2


# One entry for POSE and FACE; two entries (left, right) for HAND
KeypointGroups = List[np.ndarray]


def empty_keypoints(num_instances: int, num_keypoints: int) -> np.ndarray:
    """Zero-score placeholder tensor of shape (num_instances, num_keypoints, 3)."""
    return np.zeros((num_instances, num_keypoints, 3), dtype=np.float32)


def to_keypoint_tensor(raw, num_keypoints: int) -> np.ndarray:
    """
    Normalize raw network output into a keypoint tensor.

    Args:
        raw: Instance-indexed floats, either flat with stride num_keypoints * 3
            or already shaped (N, K, 3). None means no instances.
        num_keypoints: K for this keypoint type

    Returns:
        float32 array of shape (N, K, 3) with scores clamped to [0, 1]
    """
    if raw is None:
        return empty_keypoints(0, num_keypoints)

    arr = np.asarray(raw, dtype=np.float32)
    if arr.ndim == 3 and arr.shape[1:] != (num_keypoints, 3):
        raise ValueError(
            f"Keypoint output of shape {arr.shape} does not hold {num_keypoints} keypoints per instance"
        )
    stride = num_keypoints * 3
    if arr.size % stride != 0:
        raise ValueError(
            f"Raw keypoint output of size {arr.size} is not a multiple of stride {stride}"
        )
    tensor = arr.reshape(-1, num_keypoints, 3).copy()
    tensor[..., 2] = np.clip(tensor[..., 2], 0.0, 1.0)
    # Undetected keypoints carry no position
    tensor[tensor[..., 2] <= 0.0] = 0.0
    return tensor


def align_to_instances(tensor: Optional[np.ndarray], num_instances: int,
                       num_keypoints: int) -> np.ndarray:
    """
    Force a per-body-instance tensor to exactly `num_instances` slots.
    Missing trailing slots are filled with zero-score keypoints.
    """
    if tensor is None:
        return empty_keypoints(num_instances, num_keypoints)

    tensor = to_keypoint_tensor(tensor, num_keypoints)
    if len(tensor) > num_instances:
        raise ValueError(
            f"Got {len(tensor)} instances for {num_instances} body instances"
        )
    if len(tensor) < num_instances:
        padding = empty_keypoints(num_instances - len(tensor), num_keypoints)
        tensor = np.concatenate([tensor, padding], axis=0)
    return tensor


def merge_hand_groups(left, right, num_instances: int,
                      num_keypoints: int = 21) -> KeypointGroups:
    """
    Merge left and right hand results into the fixed two-group layout.

    Both groups are indexed in parallel with the body instances: slot i
    holds the hands of person i, and hands that were not found keep their
    slot with all-zero scores.
    """
    return [
        align_to_instances(left, num_instances, num_keypoints),
        align_to_instances(right, num_instances, num_keypoints),
    ]


def stack_instance_results(results: Sequence[Optional[np.ndarray]],
                           num_keypoints: int = 21) -> np.ndarray:
    """Stack per-instance single results (None for an instance without detection)."""
    slots = []
    for result in results:
        if result is None:
            slots.append(empty_keypoints(1, num_keypoints)[0])
        else:
            slots.append(to_keypoint_tensor(result, num_keypoints)[0])
    if not slots:
        return empty_keypoints(0, num_keypoints)
    return np.stack(slots).astype(np.float32)


def count_valid(tensor: np.ndarray, min_score: float = 0.0) -> int:
    """Number of instances with at least one keypoint scoring above min_score."""
    if tensor.size == 0:
        return 0
    return int(np.sum(np.any(tensor[..., 2] > min_score, axis=1)))
