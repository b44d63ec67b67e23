"""
Inference engines behind the wrapper facade.
Each engine owns its networks and exposes pose, face, hand and heatmap passes.
"""

from .base import DetectorEngine
from .body_parser import find_peaks, parse_people, score_limbs
from .mediapipe_backend import MediaPipeEngine
from .opencv_dnn import OpenCVDnnEngine


def create_engine(config) -> DetectorEngine:
    """Build the engine selected by a validated WrapperConfig."""
    if config.backend == "mediapipe":
        return MediaPipeEngine(
            config.body_model,
            net_face_hands_size=config.net_face_hands_size,
            with_hands=config.with_hands,
        )
    return OpenCVDnnEngine(
        config.body_model,
        config.model_folder,
        net_face_hands_size=config.net_face_hands_size,
        with_face=config.with_face,
        with_hands=config.with_hands,
        use_cuda=config.use_cuda,
    )


__all__ = [
    'DetectorEngine',
    'OpenCVDnnEngine',
    'MediaPipeEngine',
    'create_engine',
    'find_peaks',
    'score_limbs',
    'parse_people'
]
