"""
Multi-person body parsing from a heatmap/PAF stack.

1. Peaks: 3x3 local maxima of each (smoothed) part heatmap above a threshold
2. Limbs: every candidate pair of a skeleton connection is scored by the line
   integral of its part affinity field; pairs are matched greedily
3. People: limbs sharing parts are chained into skeletons; weak skeletons
   are dropped
"""

import logging
from typing import List, Tuple

import cv2
import numpy as np

from ..body_models import BodyModel

logger = logging.getLogger(__name__)

PEAK_THRESHOLD = 0.1
PAF_SAMPLES = 10
PAF_SCORE_THRESHOLD = 0.05
PAF_MIN_RATIO = 0.8
MIN_PARTS = 3
MIN_MEAN_SCORE = 0.2

# (candidate index in part A, candidate index in part B, connection score)
Connection = Tuple[int, int, float]


def find_peaks(heatmap: np.ndarray, threshold: float = PEAK_THRESHOLD) -> np.ndarray:
    """
    Local maxima of a single heatmap.

    Returns:
        Array of shape (M, 3): x, y, score
    """
    heatmap = np.ascontiguousarray(heatmap, dtype=np.float32)
    smoothed = cv2.GaussianBlur(heatmap, (3, 3), 0)
    local_max = cv2.dilate(smoothed, np.ones((3, 3), np.uint8))
    mask = (smoothed >= local_max) & (smoothed > threshold)
    ys, xs = np.nonzero(mask)
    if len(xs) == 0:
        return np.zeros((0, 3), dtype=np.float32)
    scores = np.clip(heatmap[ys, xs], 0.0, 1.0)
    return np.stack([xs, ys, scores], axis=1).astype(np.float32)


def score_limbs(cand_a: np.ndarray, cand_b: np.ndarray, paf_x: np.ndarray,
                paf_y: np.ndarray) -> List[Connection]:
    """
    Score and greedily match candidate limbs between two parts.

    Each part candidate ends up in at most one connection.
    """
    if len(cand_a) == 0 or len(cand_b) == 0:
        return []

    height, width = paf_x.shape
    scored = []
    for i, a in enumerate(cand_a):
        for j, b in enumerate(cand_b):
            vec = b[:2] - a[:2]
            norm = float(np.linalg.norm(vec))
            if norm < 1e-6:
                continue
            unit = vec / norm

            xs = np.clip(np.rint(np.linspace(a[0], b[0], PAF_SAMPLES)).astype(int), 0, width - 1)
            ys = np.clip(np.rint(np.linspace(a[1], b[1], PAF_SAMPLES)).astype(int), 0, height - 1)
            samples = paf_x[ys, xs] * unit[0] + paf_y[ys, xs] * unit[1]

            # Penalize limbs longer than half the image height
            score = float(samples.mean()) + min(0.5 * height / norm - 1.0, 0.0)
            enough = np.count_nonzero(samples > PAF_SCORE_THRESHOLD) > PAF_MIN_RATIO * PAF_SAMPLES
            if enough and score > 0:
                scored.append((i, j, score))

    scored.sort(key=lambda c: c[2], reverse=True)
    used_a, used_b = set(), set()
    matched = []
    for i, j, score in scored:
        if i in used_a or j in used_b:
            continue
        matched.append((i, j, score))
        used_a.add(i)
        used_b.add(j)
        if len(matched) >= min(len(cand_a), len(cand_b)):
            break
    return matched


def parse_people(stack: np.ndarray, model: BodyModel) -> np.ndarray:
    """
    Assemble people from a heatmap/PAF stack.

    Args:
        stack: (H, W, C) raw network output; heatmaps in [0, 1], PAFs in [-1, 1]
        model: Body model describing the channel layout

    Returns:
        Keypoints (N, K, 3) in stack pixel coordinates
    """
    if stack.ndim != 3 or stack.shape[2] != model.num_channels:
        raise ValueError(
            f"Expected a (H, W, {model.num_channels}) stack for {model.name}, got {stack.shape}"
        )

    num_parts = model.num_parts
    peaks = [find_peaks(stack[:, :, part]) for part in range(num_parts)]

    # Global candidate ids across all parts
    offsets = np.cumsum([0] + [len(p) for p in peaks])
    all_peaks = np.concatenate(peaks, axis=0) if offsets[-1] else np.zeros((0, 3), np.float32)

    num_tree_pairs = len(model.render_pairs)
    people: List[np.ndarray] = []

    for k, (part_a, part_b) in enumerate(model.paf_pairs):
        ch_x, ch_y = model.paf_channels(k)
        limbs = score_limbs(peaks[part_a], peaks[part_b], stack[:, :, ch_x], stack[:, :, ch_y])

        for i, j, limb_score in limbs:
            ga, gb = offsets[part_a] + i, offsets[part_b] + j
            owners = [idx for idx, p in enumerate(people) if p[part_a] == ga or p[part_b] == gb]

            if len(owners) == 1:
                person = people[owners[0]]
                if person[part_b] != gb:
                    person[part_b] = gb
                    person[-1] += 1
                    person[-2] += all_peaks[gb, 2] + limb_score

            elif len(owners) == 2:
                first, second = people[owners[0]], people[owners[1]]
                overlap = (first[:-2] >= 0) & (second[:-2] >= 0)
                if not np.any(overlap):
                    first[:-2] += second[:-2] + 1
                    first[-2:] += second[-2:]
                    first[-2] += limb_score
                    del people[owners[1]]
                else:
                    first[part_b] = gb
                    first[-1] += 1
                    first[-2] += all_peaks[gb, 2] + limb_score

            elif not owners and k < num_tree_pairs:
                row = -np.ones(num_parts + 2, dtype=np.float64)
                row[part_a] = ga
                row[part_b] = gb
                row[-1] = 2
                row[-2] = all_peaks[ga, 2] + all_peaks[gb, 2] + limb_score
                people.append(row)

    kept = [p for p in people if p[-1] >= MIN_PARTS and p[-2] / p[-1] >= MIN_MEAN_SCORE]
    logger.debug("Parsed %d people (%d candidates before filtering)", len(kept), len(people))

    keypoints = np.zeros((len(kept), num_parts, 3), dtype=np.float32)
    for n, person in enumerate(kept):
        for part in range(num_parts):
            gid = int(person[part])
            if gid >= 0:
                keypoints[n, part] = all_peaks[gid]
    return keypoints
