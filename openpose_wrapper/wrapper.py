"""
OpenPose Wrapper Facade
Stateful front end over the pose, face and hand networks. Pose must run on
an image before face or hands run on the same image.

Usage:
    with OpenPoseWrapper(model_folder="models/", download_heatmaps=True) as op:
        op.detect_pose(image)
        op.detect_hands(image)
        left, right = op.get_keypoints(KeypointType.HAND)
        heatmaps = op.get_heatmaps()
        annotated = op.render(image)
"""

import logging
from typing import Callable, Optional, Tuple, Union

import cv2
import numpy as np

from .body_models import FACE_NUM_KEYPOINTS, HAND_NUM_KEYPOINTS
from .config import WrapperConfig, instance_logger
from .engines import DetectorEngine, create_engine
from .errors import (
    ConfigurationError, FeatureDisabled, HeatmapsDisabled,
    InferenceFailure, OpenPoseWrapperError,
)
from .keypoints import (
    KeypointGroups, KeypointType, align_to_instances,
    empty_keypoints, merge_hand_groups, to_keypoint_tensor,
)
from .regions import face_rects, hand_rects
from .rendering import render_keypoints
from .scaling import (
    CoordinateMode, ReferenceSizes, ScaleMode, ValueRangeMode,
    convert_coordinates, convert_values, resize_stack,
)
from .state import DetectionState, DetectionStateMachine, FrameContext

logger = logging.getLogger(__name__)


class OpenPoseWrapper:
    """
    Pose, face and hand keypoint detection with strict stage ordering.

    Keypoints returned by `get_keypoints` are in output-resolution pixels.
    Heatmaps returned by `get_heatmaps` are (H, W, C) at output resolution
    in the configured value range; see `body_models` for the channel layout.

    Not thread-safe: serialize calls on one instance, or use one instance
    per thread. The wrapper owns its engine and releases it on `close()`.
    """

    def __init__(self, net_pose_size=(320, 240), net_face_hands_size=(128, 128),
                 output_size=(640, 480), model: str = "COCO", model_folder: str = "models/",
                 log_level: int = 255, download_heatmaps: bool = False,
                 heatmap_scale_mode: Union[ScaleMode, ValueRangeMode, str] = ScaleMode.ZERO_TO_ONE,
                 with_face: bool = True, with_hands: bool = True,
                 backend: str = "opencv_dnn", use_cuda: bool = False,
                 engine: Optional[DetectorEngine] = None):
        """
        Initialize the wrapper and load the networks once.

        Args:
            net_pose_size: Body pose network input size (width, height)
            net_face_hands_size: Face and hand networks input size
            output_size: Keypoints and heatmaps are rescaled to this size
            model: Body pose model (COCO, MPI, MPI_4_layers)
            model_folder: OpenPose models folder
            log_level: OpenPose log level (255 = silent)
            download_heatmaps: If False heatmaps are never copied out of the network
            heatmap_scale_mode: Value range of the returned heatmaps
            with_face: Enable face detection
            with_hands: Enable hand detection
            backend: Engine to build when `engine` is not given
            use_cuda: Ask the engine for CUDA execution
            engine: Pre-built engine; the wrapper takes ownership of it
        """
        self._engine = engine
        self._state = DetectionStateMachine()
        self._logger = logger

        try:
            self.config = WrapperConfig(
                net_pose_size=net_pose_size,
                net_face_hands_size=net_face_hands_size,
                output_size=output_size,
                model=model,
                model_folder=model_folder,
                log_level=log_level,
                download_heatmaps=download_heatmaps,
                heatmap_scale_mode=heatmap_scale_mode,
                with_face=with_face,
                with_hands=with_hands,
                backend=backend,
                use_cuda=use_cuda,
            ).validate()
            self._logger = instance_logger(self.config.log_level)

            if self._engine is None:
                self._engine = create_engine(self.config)
            self._check_engine()
        except Exception:
            self.close()
            raise

        self._logger.info("OpenPose wrapper ready: engine=%s model=%s face=%s hands=%s heatmaps=%s",
                    self._engine.name(), self.config.model, self.with_face,
                    self.with_hands, self.config.download_heatmaps)

    @classmethod
    def from_config(cls, config: WrapperConfig, engine: Optional[DetectorEngine] = None) -> "OpenPoseWrapper":
        return cls(
            net_pose_size=config.net_pose_size,
            net_face_hands_size=config.net_face_hands_size,
            output_size=config.output_size,
            model=config.model,
            model_folder=config.model_folder,
            log_level=config.log_level,
            download_heatmaps=config.download_heatmaps,
            heatmap_scale_mode=config.heatmap_scale_mode,
            with_face=config.with_face,
            with_hands=config.with_hands,
            backend=config.backend,
            use_cuda=config.use_cuda,
            engine=engine,
        )

    def _check_engine(self):
        engine = self._engine
        if engine.body_model.name != self.config.model:
            raise ConfigurationError(
                f"Engine {engine.name()} runs {engine.body_model.name}, configured model is {self.config.model}"
            )
        if self.config.with_face and not engine.supports_face:
            raise ConfigurationError(f"Engine {engine.name()} cannot detect faces")
        if self.config.with_hands and not engine.supports_hands:
            raise ConfigurationError(f"Engine {engine.name()} cannot detect hands")
        if self.config.download_heatmaps and not engine.supports_heatmaps:
            raise ConfigurationError(f"Engine {engine.name()} does not expose heatmaps")

    # ------------------------------------------------------------------
    # Properties

    @property
    def with_face(self) -> bool:
        return self.config.with_face

    @property
    def with_hands(self) -> bool:
        return self.config.with_hands

    @property
    def body_model(self):
        return self.config.body_model

    @property
    def logger(self) -> logging.Logger:
        """Logger of this instance; its level follows `log_level`."""
        return self._logger

    @property
    def state(self) -> DetectionState:
        return self._state.state

    @property
    def num_people(self) -> int:
        """People found by the last detect_pose (0 when idle)."""
        frame = self._state.frame
        return frame.num_people if frame is not None else 0

    # ------------------------------------------------------------------
    # Helpers

    def _ensure_open(self):
        if self._engine is None:
            raise InferenceFailure("The wrapper has been closed")

    @staticmethod
    def _check_image(image) -> Tuple[int, int]:
        if not isinstance(image, np.ndarray) or image.ndim != 3 or image.shape[2] != 3:
            shape = getattr(image, "shape", None)
            raise InferenceFailure(f"Expected an HxWx3 image, got shape {shape}")
        if image.dtype != np.uint8:
            raise InferenceFailure(f"Expected an 8-bit image, got {image.dtype}")
        if image.shape[0] == 0 or image.shape[1] == 0:
            raise InferenceFailure("Empty image")
        return image.shape[1], image.shape[0]

    @staticmethod
    def _run(stage: str, fn: Callable):
        try:
            return fn()
        except OpenPoseWrapperError:
            raise
        except Exception as e:
            raise InferenceFailure(f"{stage} failed: {e}") from e

    def _sizes(self, image_size: Tuple[int, int]) -> ReferenceSizes:
        return ReferenceSizes(
            input_size=image_size,
            net_output_size=self.config.net_pose_size,
            output_size=self.config.output_size,
        )

    def _to_output(self, frame: FrameContext, keypoints: np.ndarray) -> np.ndarray:
        return convert_coordinates(keypoints, CoordinateMode.INPUT_RESOLUTION,
                                   CoordinateMode.OUTPUT_RESOLUTION, self._sizes(frame.image_size))

    def _scale_heatmaps(self, stack: np.ndarray) -> np.ndarray:
        model = self.body_model
        if stack.ndim != 3 or stack.shape[2] != model.num_channels:
            raise InferenceFailure(
                f"Heatmap stack of shape {stack.shape} does not match {model.name} "
                f"({model.num_channels} channels)"
            )
        stack = resize_stack(stack, self.config.output_size)
        mode = self.config.heatmap_scale_mode
        heatmaps = np.clip(stack[:, :, :model.num_heatmaps], 0.0, 1.0)
        pafs = np.clip(stack[:, :, model.num_heatmaps:], -1.0, 1.0)
        heatmaps = convert_values(heatmaps, ValueRangeMode.ZERO_TO_ONE, mode)
        pafs = convert_values(pafs, ValueRangeMode.PLUS_MINUS_ONE, mode)
        return np.concatenate([heatmaps, pafs], axis=2)

    # ------------------------------------------------------------------
    # Detection stages

    def detect_pose(self, image: np.ndarray) -> None:
        """
        Detect body poses in the image and start a new frame.
        Previous frame results are discarded only when detection succeeds.

        Args:
            image: BGR image (H, W, 3) uint8
        """
        self._ensure_open()
        image_size = self._check_image(image)
        net_size = self.config.net_pose_size
        num_parts = self.body_model.num_parts

        def run():
            net_image = image
            if image_size != net_size:
                net_image = cv2.resize(image, net_size, interpolation=cv2.INTER_LINEAR)
            raw = self._engine.run_pose_net(net_image)
            return convert_coordinates(to_keypoint_tensor(raw, num_parts),
                                       CoordinateMode.NET_OUTPUT_RESOLUTION,
                                       CoordinateMode.INPUT_RESOLUTION,
                                       self._sizes(image_size))

        pose = self._run("Pose detection", run)

        heatmaps = None
        if self.config.download_heatmaps:
            heatmaps = self._scale_heatmaps(self._run("Heatmap download", self._engine.fetch_heatmaps))

        frame = self._state.begin_frame(image_size, pose, heatmaps)
        self._logger.debug("Frame %d: %d people detected", frame.frame_id, frame.num_people)

    def detect_face(self, image: np.ndarray) -> None:
        """
        Detect faces in the image.
        `detect_pose` must have run on the same image first.
        """
        self._ensure_open()
        frame = self._state.require_pose("detect_face")
        if not self.with_face:
            raise FeatureDisabled("Face detection was not enabled at construction")
        self._check_image(image)

        if frame.num_people == 0:
            faces = empty_keypoints(0, FACE_NUM_KEYPOINTS)
        else:
            rects = face_rects(frame.pose_keypoints, self.body_model)
            faces = self._run("Face detection", lambda: align_to_instances(
                self._engine.run_face_net(image, rects), frame.num_people, FACE_NUM_KEYPOINTS))

        self._state.complete_face(faces)
        self._logger.debug("Frame %d: face detection done", frame.frame_id)

    def detect_hands(self, image: np.ndarray) -> None:
        """
        Detect hands in the image.
        `detect_pose` must have run on the same image first.
        """
        self._ensure_open()
        frame = self._state.require_pose("detect_hands")
        if not self.with_hands:
            raise FeatureDisabled("Hand detection was not enabled at construction")
        self._check_image(image)

        if frame.num_people == 0:
            hands = merge_hand_groups(None, None, 0, HAND_NUM_KEYPOINTS)
        else:
            rects = hand_rects(frame.pose_keypoints, self.body_model)

            def run():
                left, right = self._engine.run_hand_net(image, rects)
                return merge_hand_groups(left, right, frame.num_people, HAND_NUM_KEYPOINTS)

            hands = self._run("Hand detection", run)

        self._state.complete_hands(hands)
        self._logger.debug("Frame %d: hand detection done", frame.frame_id)

    # ------------------------------------------------------------------
    # Queries

    def get_keypoints(self, t: Union[KeypointType, str] = KeypointType.POSE) -> KeypointGroups:
        """
        Returns the keypoints of a given type for the current frame.

        Args:
            t: Keypoint type (or its name)

        Returns:
            A list of (N, K, 3) arrays: one entry for POSE and FACE, two for
            HAND (left hands first, right hands second). Hands and faces are
            indexed in parallel with the body instances.
        """
        if isinstance(t, str):
            try:
                t = KeypointType[t.upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown keypoint type {t!r}. Choose one of: {', '.join(k.name for k in KeypointType)}"
                ) from None

        if t is KeypointType.FACE:
            if not self.with_face:
                raise FeatureDisabled("Face detection was not enabled at construction")
            frame = self._state.require_face()
            return [self._to_output(frame, frame.face_keypoints)]

        if t is KeypointType.HAND:
            if not self.with_hands:
                raise FeatureDisabled("Hand detection was not enabled at construction")
            frame = self._state.require_hands()
            return [self._to_output(frame, group) for group in frame.hand_keypoints]

        frame = self._state.require_pose("Pose keypoint query")
        return [self._to_output(frame, frame.pose_keypoints)]

    def get_heatmaps(self) -> np.ndarray:
        """
        Returns the heatmaps and PAFs of the last pose pass.

        Returns:
            (H, W, C) float32 at output resolution. Each PAF occupies two
            consecutive channels, one per axis.
        """
        if not self.config.download_heatmaps:
            raise HeatmapsDisabled("Heatmap download was disabled at construction")
        frame = self._state.require_pose("Heatmap query")
        return frame.heatmaps.copy()

    def render(self, image: np.ndarray) -> np.ndarray:
        """
        Draw the keypoints of every stage run so far on a copy of the image.
        Before any detection the copy is returned unchanged. Keypoints are
        rescaled from the detected image size to this image's size.
        """
        image_size = self._check_image(image)
        frame = self._state.frame
        if frame is None:
            return image.copy()

        sizes = ReferenceSizes(frame.image_size, self.config.net_pose_size, image_size)

        def scaled(points):
            return convert_coordinates(points, CoordinateMode.INPUT_RESOLUTION,
                                       CoordinateMode.OUTPUT_RESOLUTION, sizes)

        return render_keypoints(
            image,
            self.body_model,
            pose=scaled(frame.pose_keypoints),
            face=scaled(frame.face_keypoints) if frame.face_run else None,
            hands=[scaled(g) for g in frame.hand_keypoints] if frame.hands_run else None,
        )

    # ------------------------------------------------------------------
    # Resource handling

    def close(self) -> None:
        """Release the engine. Safe to call more than once."""
        engine, self._engine = self._engine, None
        self._state.reset()
        if engine is not None:
            engine.close()
            self.logger.info("Released engine %s", engine.name())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __del__(self):
        """Clean up resources."""
        if getattr(self, "_engine", None) is not None:
            self.close()
