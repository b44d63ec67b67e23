"""
Keypoint rendering: draws skeletons, faces and hands on a copy of an image.
"""

from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .body_models import HAND_PAIRS, BodyModel

# Different colors for different people (BGR)
PERSON_COLORS = [
    (0, 255, 0),      # Green
    (255, 0, 0),      # Blue
    (0, 0, 255),      # Red
    (255, 255, 0),    # Cyan
    (255, 0, 255),    # Magenta
    (0, 255, 255),    # Yellow
]
FACE_COLOR = (255, 255, 255)
LEFT_HAND_COLOR = (255, 128, 0)
RIGHT_HAND_COLOR = (0, 128, 255)


def _draw_skeleton(image: np.ndarray, points: np.ndarray, pairs: Sequence[Tuple[int, int]],
                   color, threshold: float, radius: int, thickness: int) -> None:
    for x, y, conf in points:
        if conf > threshold:
            cv2.circle(image, (int(x), int(y)), radius, color, -1)

    for i, j in pairs:
        if points[i, 2] > threshold and points[j, 2] > threshold:
            pt1 = (int(points[i, 0]), int(points[i, 1]))
            pt2 = (int(points[j, 0]), int(points[j, 1]))
            cv2.line(image, pt1, pt2, color, thickness)


def render_keypoints(image: np.ndarray, body_model: BodyModel,
                     pose: Optional[np.ndarray] = None,
                     face: Optional[np.ndarray] = None,
                     hands: Optional[List[np.ndarray]] = None,
                     threshold: float = 0.05) -> np.ndarray:
    """
    Render keypoints on a copy of the image.

    Args:
        image: Input image (H, W, 3) uint8
        body_model: Model defining the body skeleton
        pose: Body keypoints (N, K, 3) in the image's pixel coordinates
        face: Face keypoints (N, 70, 3), or None
        hands: [left (N, 21, 3), right (N, 21, 3)], or None
        threshold: Keypoints at or below this score are not drawn

    Returns:
        Annotated copy of the image
    """
    canvas = image.copy()
    scale = max(1, int(round(max(canvas.shape[:2]) / 480.0)))

    if pose is not None:
        for person_idx, person in enumerate(pose):
            color = PERSON_COLORS[person_idx % len(PERSON_COLORS)]
            _draw_skeleton(canvas, person, body_model.render_pairs, color,
                           threshold, radius=2 + scale, thickness=1 + scale)

    if face is not None:
        for person_face in face:
            for x, y, conf in person_face:
                if conf > threshold:
                    cv2.circle(canvas, (int(x), int(y)), scale, FACE_COLOR, -1)

    if hands is not None:
        for group, color in zip(hands, (LEFT_HAND_COLOR, RIGHT_HAND_COLOR)):
            for hand in group:
                _draw_skeleton(canvas, hand, HAND_PAIRS, color, threshold,
                               radius=scale, thickness=scale)

    return canvas
