from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

from ..body_models import BodyModel
from ..regions import Rect


class DetectorEngine(ABC):
    """
    Inference backend interface.

    The engine owns the networks, their weights and any device buffers.
    Pose keypoints come back in network-output resolution (the pose network
    input size); face and hand keypoints come back in input-image pixels.
    """

    body_model: BodyModel
    supports_face: bool = False
    supports_hands: bool = False
    supports_heatmaps: bool = False

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def run_pose_net(self, net_image: np.ndarray) -> np.ndarray:
        """Detect people on an image already resized to the pose net size. Returns (N, K, 3)."""

    def run_face_net(self, image: np.ndarray, rects: List[Optional[Rect]]) -> np.ndarray:
        """One face per rectangle; None rectangles yield zero-score slots. Returns (N, 70, 3)."""
        raise NotImplementedError(f"{self.name()} has no face network")

    def run_hand_net(self, image: np.ndarray,
                     rects: List[Tuple[Optional[Rect], Optional[Rect]]]) -> Tuple[np.ndarray, np.ndarray]:
        """(left, right) hands per rectangle pair. Returns two (N, 21, 3) arrays."""
        raise NotImplementedError(f"{self.name()} has no hand network")

    def fetch_heatmaps(self) -> np.ndarray:
        """Raw heatmap/PAF stack (H, W, C) of the last pose pass, at network-output resolution."""
        raise NotImplementedError(f"{self.name()} does not expose heatmaps")

    @abstractmethod
    def close(self) -> None: ...
