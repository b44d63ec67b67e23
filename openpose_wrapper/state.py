"""
Detection State Machine
Tracks which stages ran for the current frame and enforces pose -> face/hands
ordering.

    IDLE --detect_pose--> POSE_DONE --detect_face--> FACE_DONE
                              |                          |
                              +--detect_hands--> HANDS_DONE --> FACE_AND_HANDS_DONE

A new detect_pose replaces the frame and returns to POSE_DONE.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .errors import PrecedingStageMissing


class DetectionState(Enum):
    IDLE = "idle"
    POSE_DONE = "pose_done"
    FACE_DONE = "face_done"
    HANDS_DONE = "hands_done"
    FACE_AND_HANDS_DONE = "face_and_hands_done"


@dataclass
class FrameContext:
    """Per-image detection results. Keypoints are stored in input resolution."""

    image_size: Tuple[int, int]
    pose_keypoints: np.ndarray
    heatmaps: Optional[np.ndarray] = None
    face_keypoints: Optional[np.ndarray] = None
    hand_keypoints: Optional[List[np.ndarray]] = None
    pose_run: bool = True
    face_run: bool = False
    hands_run: bool = False
    frame_id: int = 0

    @property
    def num_people(self) -> int:
        return int(self.pose_keypoints.shape[0])


@dataclass
class DetectionStateMachine:
    """
    Holds the current FrameContext. Not thread-safe: one instance per
    thread of control.
    """

    frame: Optional[FrameContext] = None
    frames_seen: int = field(default=0)

    @property
    def state(self) -> DetectionState:
        if self.frame is None:
            return DetectionState.IDLE
        if self.frame.face_run and self.frame.hands_run:
            return DetectionState.FACE_AND_HANDS_DONE
        if self.frame.face_run:
            return DetectionState.FACE_DONE
        if self.frame.hands_run:
            return DetectionState.HANDS_DONE
        return DetectionState.POSE_DONE

    def begin_frame(self, image_size: Tuple[int, int], pose_keypoints: np.ndarray,
                    heatmaps: Optional[np.ndarray] = None) -> FrameContext:
        """Discard the previous frame and start a new one with pose results."""
        self.frames_seen += 1
        self.frame = FrameContext(
            image_size=image_size,
            pose_keypoints=pose_keypoints,
            heatmaps=heatmaps,
            frame_id=self.frames_seen,
        )
        return self.frame

    def require_pose(self, stage: str) -> FrameContext:
        """Return the current frame, or fail if detect_pose has not run."""
        if self.frame is None:
            raise PrecedingStageMissing(
                f"{stage} requires detect_pose to run first on the same image"
            )
        return self.frame

    def require_face(self) -> FrameContext:
        frame = self.require_pose("Face keypoint query")
        if not frame.face_run:
            raise PrecedingStageMissing("detect_face has not run for the current frame")
        return frame

    def require_hands(self) -> FrameContext:
        frame = self.require_pose("Hand keypoint query")
        if not frame.hands_run:
            raise PrecedingStageMissing("detect_hands has not run for the current frame")
        return frame

    def complete_face(self, face_keypoints: np.ndarray) -> None:
        frame = self.require_pose("detect_face")
        frame.face_keypoints = face_keypoints
        frame.face_run = True

    def complete_hands(self, hand_keypoints: List[np.ndarray]) -> None:
        frame = self.require_pose("detect_hands")
        frame.hand_keypoints = hand_keypoints
        frame.hands_run = True

    def reset(self) -> None:
        self.frame = None
