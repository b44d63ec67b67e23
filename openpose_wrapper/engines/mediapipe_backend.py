"""
MediaPipe engine
Single-person body pose mapped onto the COCO part order, plus hands via
MediaPipe Hands on each hand region. No face keypoints and no heatmaps.
"""

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..body_models import HAND_NUM_KEYPOINTS, BodyModel
from ..errors import ConfigurationError
from ..keypoints import stack_instance_results
from ..regions import Rect, crop_region, crop_to_image
from .base import DetectorEngine

logger = logging.getLogger(__name__)


class MediaPipeEngine(DetectorEngine):
    """
    Pose and hand detection with MediaPipe solutions.
    """

    # MediaPipe landmark index for each COCO part; None parts are synthesized
    MEDIAPIPE_TO_COCO = [
        0,     # Nose
        None,  # Neck (midpoint of shoulders)
        12,    # Right Shoulder
        14,    # Right Elbow
        16,    # Right Wrist
        11,    # Left Shoulder
        13,    # Left Elbow
        15,    # Left Wrist
        24,    # Right Hip
        26,    # Right Knee
        28,    # Right Ankle
        23,    # Left Hip
        25,    # Left Knee
        27,    # Left Ankle
        5,     # Right Eye
        2,     # Left Eye
        8,     # Right Ear
        7,     # Left Ear
    ]

    def __init__(self, body_model: BodyModel,
                 net_face_hands_size: Tuple[int, int] = (128, 128),
                 with_hands: bool = True,
                 min_detection_confidence: float = 0.5):
        """
        Initialize MediaPipe Pose (and Hands).

        Args:
            body_model: Must be COCO
            net_face_hands_size: Size hand crops are resized to
            with_hands: Initialize MediaPipe Hands
            min_detection_confidence: MediaPipe detection confidence
        """
        if body_model.name != "COCO":
            raise ConfigurationError(f"MediaPipe engine only produces COCO keypoints, not {body_model.name}")

        try:
            import mediapipe as mp
        except ImportError as e:
            raise ConfigurationError(
                "MediaPipe is not installed. Install it with: pip install mediapipe"
            ) from e

        self.body_model = body_model
        self.net_face_hands_size = tuple(net_face_hands_size)
        self.supports_hands = with_hands

        self._pose = mp.solutions.pose.Pose(
            static_image_mode=True,
            model_complexity=2,
            min_detection_confidence=min_detection_confidence,
        )
        self._hands = None
        if with_hands:
            try:
                self._hands = mp.solutions.hands.Hands(
                    static_image_mode=True,
                    max_num_hands=1,
                    min_detection_confidence=min_detection_confidence,
                )
            except Exception:
                self._pose.close()
                raise
        logger.info("MediaPipe engine initialized (hands=%s)", with_hands)

    def name(self) -> str:
        return "mediapipe"

    def _mediapipe_to_coco(self, landmarks, image_shape) -> np.ndarray:
        height, width = image_shape[:2]
        skeleton = np.zeros((len(self.MEDIAPIPE_TO_COCO), 3), dtype=np.float32)

        for part, idx in enumerate(self.MEDIAPIPE_TO_COCO):
            if idx is None or idx >= len(landmarks.landmark):
                continue
            lm = landmarks.landmark[idx]
            skeleton[part] = (lm.x * width, lm.y * height, lm.visibility)

        # Neck is the midpoint between shoulders
        if skeleton[2, 2] > 0 and skeleton[5, 2] > 0:
            skeleton[1] = (skeleton[2] + skeleton[5]) / 2
            skeleton[1, 2] = min(skeleton[2, 2], skeleton[5, 2])

        return skeleton

    def run_pose_net(self, net_image: np.ndarray) -> np.ndarray:
        rgb = cv2.cvtColor(net_image, cv2.COLOR_BGR2RGB)
        results = self._pose.process(rgb)
        if not results.pose_landmarks:
            return np.zeros((0, self.body_model.num_parts, 3), dtype=np.float32)
        return self._mediapipe_to_coco(results.pose_landmarks, net_image.shape)[None]

    def _detect_hand(self, image: np.ndarray, rect: Rect) -> Optional[np.ndarray]:
        crop = crop_region(image, rect, self.net_face_hands_size)
        results = self._hands.process(cv2.cvtColor(crop, cv2.COLOR_BGR2RGB))
        if not results.multi_hand_landmarks:
            return None

        crop_w, crop_h = self.net_face_hands_size
        score = results.multi_handedness[0].classification[0].score
        points = np.array(
            [(lm.x * crop_w, lm.y * crop_h, score) for lm in results.multi_hand_landmarks[0].landmark],
            dtype=np.float32,
        )
        return crop_to_image(points[:HAND_NUM_KEYPOINTS], rect, self.net_face_hands_size)[None]

    def run_hand_net(self, image: np.ndarray,
                     rects: List[Tuple[Optional[Rect], Optional[Rect]]]) -> Tuple[np.ndarray, np.ndarray]:
        if self._hands is None:
            return super().run_hand_net(image, rects)

        left = [None if r is None else self._detect_hand(image, r) for r, _ in rects]
        right = [None if r is None else self._detect_hand(image, r) for _, r in rects]
        return (stack_instance_results(left, HAND_NUM_KEYPOINTS),
                stack_instance_results(right, HAND_NUM_KEYPOINTS))

    def close(self) -> None:
        if self._pose is not None:
            self._pose.close()
            self._pose = None
        if self._hands is not None:
            self._hands.close()
            self._hands = None
