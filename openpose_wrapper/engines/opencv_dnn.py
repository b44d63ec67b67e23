"""
OpenCV DNN engine
Runs the OpenPose Caffe networks (body, face, hand) through cv2.dnn.
Images are BGR uint8, as read by cv2.imread.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..body_models import (
    FACE_CAFFEMODEL, FACE_NUM_KEYPOINTS, FACE_PROTOTXT,
    HAND_CAFFEMODEL, HAND_NUM_KEYPOINTS, HAND_PROTOTXT, BodyModel,
)
from ..errors import ConfigurationError
from ..keypoints import empty_keypoints, stack_instance_results
from ..regions import Rect, crop_region, crop_to_image
from ..scaling import resize_stack
from .base import DetectorEngine
from .body_parser import parse_people

logger = logging.getLogger(__name__)


class OpenCVDnnEngine(DetectorEngine):
    """
    OpenPose networks on cv2.dnn.

    Heatmaps of the body network are upsampled to the network input size
    before parsing, so network-output resolution equals `net_pose_size`.
    """

    supports_heatmaps = True

    def __init__(self, body_model: BodyModel, model_folder: str,
                 net_face_hands_size: Tuple[int, int] = (128, 128),
                 with_face: bool = True, with_hands: bool = True,
                 use_cuda: bool = False):
        """
        Load the networks.

        Args:
            body_model: Body pose model to load
            model_folder: OpenPose models folder
            net_face_hands_size: Input size of the face and hand networks
            with_face: Load the face network
            with_hands: Load the hand network
            use_cuda: Run on the CUDA backend of cv2.dnn
        """
        self.body_model = body_model
        self.model_folder = Path(model_folder)
        self.net_face_hands_size = tuple(net_face_hands_size)
        self.use_cuda = use_cuda
        self.supports_face = with_face
        self.supports_hands = with_hands

        self._last_stack: Optional[np.ndarray] = None
        self._face_net = None
        self._hand_net = None

        self._pose_net = self._load_net(body_model.prototxt, body_model.caffemodel)
        if with_face:
            self._face_net = self._load_net(FACE_PROTOTXT, FACE_CAFFEMODEL)
        if with_hands:
            self._hand_net = self._load_net(HAND_PROTOTXT, HAND_CAFFEMODEL)

    def name(self) -> str:
        return "opencv_dnn"

    def _load_net(self, prototxt: str, caffemodel: str):
        proto_path = self.model_folder / prototxt
        weights_path = self.model_folder / caffemodel
        for path in (proto_path, weights_path):
            if not path.is_file():
                raise ConfigurationError(f"Model file not found: {path}")

        logger.info("Loading network %s", proto_path)
        try:
            net = cv2.dnn.readNetFromCaffe(str(proto_path), str(weights_path))
        except cv2.error as e:
            raise ConfigurationError(f"Could not load {proto_path}: {e}") from e

        if self.use_cuda:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        return net

    @staticmethod
    def _forward(net, image: np.ndarray) -> np.ndarray:
        height, width = image.shape[:2]
        blob = cv2.dnn.blobFromImage(image, 1.0 / 255, (width, height), (0, 0, 0),
                                     swapRB=False, crop=False)
        net.setInput(blob)
        return net.forward()

    def run_pose_net(self, net_image: np.ndarray) -> np.ndarray:
        output = self._forward(self._pose_net, net_image)
        num_channels = self.body_model.num_channels
        if output.shape[1] < num_channels:
            raise RuntimeError(
                f"Pose network produced {output.shape[1]} channels, "
                f"{self.body_model.name} needs {num_channels}"
            )

        height, width = net_image.shape[:2]
        stack = np.transpose(output[0, :num_channels], (1, 2, 0))
        self._last_stack = resize_stack(stack, (width, height))
        return parse_people(self._last_stack, self.body_model)

    def _run_keypoint_net(self, net, image: np.ndarray, rect: Rect,
                          num_keypoints: int, flip: bool = False) -> np.ndarray:
        crop = crop_region(image, rect, self.net_face_hands_size, flip=flip)
        output = self._forward(net, crop)
        crop_w, crop_h = self.net_face_hands_size

        points = np.zeros((num_keypoints, 3), dtype=np.float32)
        for k in range(num_keypoints):
            heatmap = output[0, k]
            _, max_val, _, max_loc = cv2.minMaxLoc(heatmap)
            points[k, 0] = max_loc[0] * crop_w / float(heatmap.shape[1])
            points[k, 1] = max_loc[1] * crop_h / float(heatmap.shape[0])
            points[k, 2] = max_val
        return crop_to_image(points, rect, self.net_face_hands_size, flip=flip)[None]

    def run_face_net(self, image: np.ndarray, rects: List[Optional[Rect]]) -> np.ndarray:
        if self._face_net is None:
            return super().run_face_net(image, rects)
        if not rects:
            return empty_keypoints(0, FACE_NUM_KEYPOINTS)

        faces = [
            None if rect is None
            else self._run_keypoint_net(self._face_net, image, rect, FACE_NUM_KEYPOINTS)
            for rect in rects
        ]
        return stack_instance_results(faces, FACE_NUM_KEYPOINTS)

    def run_hand_net(self, image: np.ndarray,
                     rects: List[Tuple[Optional[Rect], Optional[Rect]]]) -> Tuple[np.ndarray, np.ndarray]:
        if self._hand_net is None:
            return super().run_hand_net(image, rects)

        left, right = [], []
        for left_rect, right_rect in rects:
            # The hand network expects right hands; left crops are mirrored
            left.append(None if left_rect is None else self._run_keypoint_net(
                self._hand_net, image, left_rect, HAND_NUM_KEYPOINTS, flip=True))
            right.append(None if right_rect is None else self._run_keypoint_net(
                self._hand_net, image, right_rect, HAND_NUM_KEYPOINTS))
        return (stack_instance_results(left, HAND_NUM_KEYPOINTS),
                stack_instance_results(right, HAND_NUM_KEYPOINTS))

    def fetch_heatmaps(self) -> np.ndarray:
        if self._last_stack is None:
            raise RuntimeError("No pose pass has run yet")
        return self._last_stack.copy()

    def close(self) -> None:
        self._pose_net = None
        self._face_net = None
        self._hand_net = None
        self._last_stack = None
