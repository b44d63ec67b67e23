"""
Batch keypoint extraction over an image folder.
Each image is run through pose (and face/hands when enabled); keypoints are
saved as one .npz per image plus a metadata.json index.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List

import cv2
import numpy as np
from tqdm import tqdm

from .errors import OpenPoseWrapperError
from .keypoints import KeypointType
from .wrapper import OpenPoseWrapper

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp']


def detect_all(op: OpenPoseWrapper, image: np.ndarray) -> Dict[str, np.ndarray]:
    """
    Run every enabled stage on one image.

    Returns:
        Dictionary with 'pose', and 'face' / 'left_hand' / 'right_hand'
        when those stages are enabled. Arrays are (N, K, 3).
    """
    op.detect_pose(image)
    result = {'pose': op.get_keypoints(KeypointType.POSE)[0]}

    if op.with_face:
        op.detect_face(image)
        result['face'] = op.get_keypoints(KeypointType.FACE)[0]

    if op.with_hands:
        op.detect_hands(image)
        left, right = op.get_keypoints(KeypointType.HAND)
        result['left_hand'] = left
        result['right_hand'] = right

    return result


def list_images(image_folder) -> List[Path]:
    image_folder = Path(image_folder)
    return sorted(f for f in image_folder.iterdir() if f.suffix.lower() in IMAGE_EXTENSIONS)


def process_folder(op: OpenPoseWrapper, image_folder: str, output_folder: str,
                   visualize: bool = False) -> Dict[str, int]:
    """
    Extract keypoints from every image in a folder.

    Args:
        op: Configured wrapper
        image_folder: Folder containing input images
        output_folder: Folder to save keypoints (and renders)
        visualize: Whether to save rendered images

    Returns:
        Dictionary mapping image names to the number of people found
    """
    output_folder = Path(output_folder)
    output_folder.mkdir(parents=True, exist_ok=True)

    if visualize:
        vis_folder = output_folder / 'visualizations'
        vis_folder.mkdir(exist_ok=True)

    image_files = list_images(image_folder)
    logger.info("Processing %d images from %s", len(image_files), image_folder)

    people_per_image = {}
    failed = []

    for img_path in tqdm(image_files, desc="Detecting"):
        image = cv2.imread(str(img_path))
        if image is None:
            logger.warning("Could not read %s", img_path.name)
            failed.append(img_path.name)
            continue

        try:
            keypoints = detect_all(op, image)
        except OpenPoseWrapperError as e:
            logger.warning("Detection failed on %s: %s", img_path.name, e)
            failed.append(img_path.name)
            continue

        np.savez(output_folder / f"{img_path.stem}.npz", **keypoints)
        people_per_image[img_path.name] = len(keypoints['pose'])

        if visualize:
            cv2.imwrite(str(vis_folder / f"{img_path.stem}_rendered.jpg"), op.render(image))

    metadata = {
        'model': op.config.model,
        'output_size': list(op.config.output_size),
        'part_names': list(op.body_model.part_names),
        'people_per_image': people_per_image,
        'failed': failed,
    }

    with open(output_folder / 'metadata.json', 'w') as f:
        json.dump(metadata, f, indent=2)

    logger.info("Saved keypoints for %d images to %s", len(people_per_image), output_folder)
    return people_per_image
