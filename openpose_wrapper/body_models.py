"""
Body model definitions: part names, skeleton pairs and the channel layout of
the heatmap/PAF stack produced by each OpenPose body network.

Heatmap/PAF stack layout for every model:
    channels 0 .. P-1      one heatmap per body part (part order below)
    channel  P             background heatmap
    channels P+1 ..        one PAF per skeleton pair, two consecutive
                           channels (x, y), ordered by `paf_index`

COCO: P=18, 19 PAFs -> 57 channels.  MPI / MPI_4_layers: P=15, 14 PAFs -> 44 channels.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError


FACE_NUM_KEYPOINTS = 70
HAND_NUM_KEYPOINTS = 21

FACE_PROTOTXT = "face/pose_deploy.prototxt"
FACE_CAFFEMODEL = "face/pose_iter_116000.caffemodel"
HAND_PROTOTXT = "hand/pose_deploy.prototxt"
HAND_CAFFEMODEL = "hand/pose_iter_102000.caffemodel"

# Hand skeleton: wrist (0) to the four joints of each finger
HAND_PAIRS = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (0, 9), (9, 10), (10, 11), (11, 12),
    (0, 13), (13, 14), (14, 15), (15, 16),
    (0, 17), (17, 18), (18, 19), (19, 20),
]


@dataclass(frozen=True)
class BodyModel:
    """
    Static description of a body pose network.

    `paf_pairs[i]` is the (part_a, part_b) limb whose PAF occupies channels
    `num_parts + 1 + 2 * paf_index[i]` (x) and the next one (y).
    """

    name: str
    part_names: Tuple[str, ...]
    paf_pairs: Tuple[Tuple[int, int], ...]
    paf_index: Tuple[int, ...]
    prototxt: str
    caffemodel: str

    @property
    def num_parts(self) -> int:
        return len(self.part_names)

    @property
    def num_heatmaps(self) -> int:
        return self.num_parts + 1

    @property
    def num_channels(self) -> int:
        return self.num_heatmaps + 2 * len(self.paf_pairs)

    def paf_channels(self, pair_idx: int) -> Tuple[int, int]:
        channel = self.num_heatmaps + 2 * self.paf_index[pair_idx]
        return channel, channel + 1

    def part(self, name: str) -> Optional[int]:
        """Index of a named part, or None when the model lacks it."""
        try:
            return self.part_names.index(name)
        except ValueError:
            return None

    @property
    def render_pairs(self) -> List[Tuple[int, int]]:
        # The last COCO pairs link ears to shoulders and are only used for assembly
        if self.name == "COCO":
            return list(self.paf_pairs[:17])
        return list(self.paf_pairs)


COCO = BodyModel(
    name="COCO",
    part_names=(
        "Nose", "Neck", "RShoulder", "RElbow", "RWrist", "LShoulder", "LElbow",
        "LWrist", "RHip", "RKnee", "RAnkle", "LHip", "LKnee", "LAnkle",
        "REye", "LEye", "REar", "LEar",
    ),
    paf_pairs=(
        (1, 2), (1, 5), (2, 3), (3, 4), (5, 6), (6, 7), (1, 8), (8, 9),
        (9, 10), (1, 11), (11, 12), (12, 13), (1, 0), (0, 14), (14, 16),
        (0, 15), (15, 17), (2, 17), (5, 16),
    ),
    paf_index=(6, 10, 7, 8, 11, 12, 0, 1, 2, 3, 4, 5, 14, 15, 17, 16, 18, 9, 13),
    prototxt="pose/coco/pose_deploy_linevec.prototxt",
    caffemodel="pose/coco/pose_iter_440000.caffemodel",
)

_MPI_PARTS = (
    "Head", "Neck", "RShoulder", "RElbow", "RWrist", "LShoulder", "LElbow",
    "LWrist", "RHip", "RKnee", "RAnkle", "LHip", "LKnee", "LAnkle", "Chest",
)
_MPI_PAIRS = (
    (0, 1), (1, 2), (2, 3), (3, 4), (1, 5), (5, 6), (6, 7), (1, 14),
    (14, 8), (8, 9), (9, 10), (14, 11), (11, 12), (12, 13),
)

MPI = BodyModel(
    name="MPI",
    part_names=_MPI_PARTS,
    paf_pairs=_MPI_PAIRS,
    paf_index=tuple(range(len(_MPI_PAIRS))),
    prototxt="pose/mpi/pose_deploy_linevec.prototxt",
    caffemodel="pose/mpi/pose_iter_160000.caffemodel",
)

MPI_4_LAYERS = BodyModel(
    name="MPI_4_layers",
    part_names=_MPI_PARTS,
    paf_pairs=_MPI_PAIRS,
    paf_index=tuple(range(len(_MPI_PAIRS))),
    prototxt="pose/mpi/pose_deploy_linevec_faster_4_stages.prototxt",
    caffemodel="pose/mpi/pose_iter_160000.caffemodel",
)

BODY_MODELS: Dict[str, BodyModel] = {m.name: m for m in (COCO, MPI, MPI_4_LAYERS)}


def get_body_model(name: str) -> BodyModel:
    """Look up a body model by name (case-insensitive)."""
    for key, model in BODY_MODELS.items():
        if key.lower() == str(name).lower():
            return model
    raise ConfigurationError(
        f"Unsupported body model {name!r}. Choose one of: {', '.join(BODY_MODELS)}"
    )
