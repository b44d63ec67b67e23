"""
Regions of interest derived from body keypoints.
Face and hand networks run on square crops placed around the head and the
wrists of each detected person.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from .body_models import BodyModel

# (x, y, width, height) in input-image pixels
Rect = Tuple[float, float, float, float]

FACE_SCORE_THRESHOLD = 0.25
HAND_SCORE_THRESHOLD = 0.03
WRIST_ELBOW_RATIO = 0.33


def _dist(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def _valid(person: np.ndarray, idx: Optional[int], threshold: float) -> bool:
    return idx is not None and person[idx, 2] > threshold


def face_rect_from_pose(person: np.ndarray, model: BodyModel) -> Optional[Rect]:
    """
    Estimate a square face rectangle for one person.

    Averages up to three (centre, size) estimates: neck/nose, the eye pair
    and the ear pair. A profile face (eye and ear visible on one side only)
    uses nose, eye and ear of that side instead of the neck.

    Args:
        person: Keypoints of one person, shape (K, 3), input resolution
        model: Body model the keypoints follow

    Returns:
        (x, y, w, h) or None if no estimate is possible
    """
    nose = model.part("Nose")
    if nose is None:
        nose = model.part("Head")
    neck = model.part("Neck")
    l_eye, r_eye = model.part("LEye"), model.part("REye")
    l_ear, r_ear = model.part("LEar"), model.part("REar")

    t = FACE_SCORE_THRESHOLD
    has_l_eye, has_r_eye = _valid(person, l_eye, t), _valid(person, r_eye, t)
    has_l_ear, has_r_ear = _valid(person, l_ear, t), _valid(person, r_ear, t)

    centre = np.zeros(2, dtype=np.float32)
    size = 0.0
    counter = 0

    if _valid(person, neck, t) and _valid(person, nose, t):
        profile = (has_l_eye == has_l_ear and has_r_eye == has_r_ear
                   and has_l_eye != has_r_eye)
        if profile:
            eye, ear = (l_eye, l_ear) if has_l_eye else (r_eye, r_ear)
            centre += (person[eye, :2] + person[ear, :2] + person[nose, :2]) / 3.0
            size += 0.85 * (_dist(person[nose], person[eye])
                            + _dist(person[nose], person[ear])
                            + _dist(person[neck], person[nose]))
        else:
            centre += (person[neck, :2] + person[nose, :2]) / 2.0
            size += 2.0 * _dist(person[neck], person[nose])
        counter += 1

    if has_l_eye and has_r_eye:
        centre += (person[l_eye, :2] + person[r_eye, :2]) / 2.0
        size += 3.0 * _dist(person[l_eye], person[r_eye])
        counter += 1

    if has_l_ear and has_r_ear:
        centre += (person[l_ear, :2] + person[r_ear, :2]) / 2.0
        size += 2.0 * _dist(person[l_ear], person[r_ear])
        counter += 1

    if counter == 0 or size <= 0:
        return None

    centre /= counter
    size /= counter
    return (float(centre[0] - size / 2), float(centre[1] - size / 2), float(size), float(size))


def _hand_rect(person: np.ndarray, wrist: Optional[int], elbow: Optional[int],
               shoulder: Optional[int]) -> Optional[Rect]:
    t = HAND_SCORE_THRESHOLD
    if not (_valid(person, wrist, t) and _valid(person, elbow, t) and _valid(person, shoulder, t)):
        return None

    w, e, s = person[wrist, :2], person[elbow, :2], person[shoulder, :2]
    centre = w + WRIST_ELBOW_RATIO * (w - e)
    side = 1.5 * max(_dist(w, e), 0.9 * _dist(e, s))
    if side <= 0:
        return None
    return (float(centre[0] - side / 2), float(centre[1] - side / 2), float(side), float(side))


def hand_rects_from_pose(person: np.ndarray, model: BodyModel) -> Tuple[Optional[Rect], Optional[Rect]]:
    """(left, right) hand rectangles for one person, None where an arm is not visible."""
    left = _hand_rect(person, model.part("LWrist"), model.part("LElbow"), model.part("LShoulder"))
    right = _hand_rect(person, model.part("RWrist"), model.part("RElbow"), model.part("RShoulder"))
    return left, right


def face_rects(pose: np.ndarray, model: BodyModel) -> List[Optional[Rect]]:
    return [face_rect_from_pose(person, model) for person in pose]


def hand_rects(pose: np.ndarray, model: BodyModel) -> List[Tuple[Optional[Rect], Optional[Rect]]]:
    return [hand_rects_from_pose(person, model) for person in pose]


def crop_region(image: np.ndarray, rect: Rect, size: Tuple[int, int],
                flip: bool = False) -> np.ndarray:
    """
    Crop `rect` out of `image` and resize it to `size` (width, height).
    Parts of the rectangle outside the image are zero-padded.
    """
    x, y, w, h = rect
    src = np.float32([[x, y], [x + w, y], [x, y + h]])
    dst_w, dst_h = size
    dst = np.float32([[0, 0], [dst_w, 0], [0, dst_h]])
    if flip:
        dst = np.float32([[dst_w, 0], [0, 0], [dst_w, dst_h]])
    transform = cv2.getAffineTransform(src, dst)
    return cv2.warpAffine(image, transform, (dst_w, dst_h), flags=cv2.INTER_LINEAR,
                          borderMode=cv2.BORDER_CONSTANT, borderValue=(0, 0, 0))


def crop_to_image(points: np.ndarray, rect: Rect, size: Tuple[int, int],
                  flip: bool = False) -> np.ndarray:
    """Map (x, y, score) points from crop pixels back to input-image pixels."""
    x, y, w, h = rect
    crop_w, crop_h = size
    points = np.array(points, dtype=np.float32, copy=True)
    if flip:
        points[:, 0] = crop_w - points[:, 0]
    points[:, 0] = x + points[:, 0] * (w / float(crop_w))
    points[:, 1] = y + points[:, 1] * (h / float(crop_h))
    return points
