from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np


IDENTITY_TRANSLATION = (0.0, 0.0, 0.0)
IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)  # x, y, z, w
IDENTITY_SCALE = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class Transform:
    translation: tuple[float, float, float] = IDENTITY_TRANSLATION
    rotation: tuple[float, float, float, float] = IDENTITY_ROTATION
    scale: tuple[float, float, float] = IDENTITY_SCALE

    def to_json(self) -> dict[str, list[float]]:
        return {
            "translation": list(self.translation),
            "rotation": list(self.rotation),
            "scale": list(self.scale),
        }


def quaternion_from_rotation(rot: np.ndarray) -> tuple[float, float, float, float]:
    """Convert a 3x3 row-major rotation matrix to an ``(x, y, z, w)`` quaternion."""
    trace = float(rot[0, 0] + rot[1, 1] + rot[2, 2])
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (rot[2, 1] - rot[1, 2]) / s
        y = (rot[0, 2] - rot[2, 0]) / s
        z = (rot[1, 0] - rot[0, 1]) / s
    elif rot[0, 0] > rot[1, 1] and rot[0, 0] > rot[2, 2]:
        s = math.sqrt(1.0 + rot[0, 0] - rot[1, 1] - rot[2, 2]) * 2.0
        w = (rot[2, 1] - rot[1, 2]) / s
        x = 0.25 * s
        y = (rot[0, 1] + rot[1, 0]) / s
        z = (rot[0, 2] + rot[2, 0]) / s
    elif rot[1, 1] > rot[2, 2]:
        s = math.sqrt(1.0 + rot[1, 1] - rot[0, 0] - rot[2, 2]) * 2.0
        w = (rot[0, 2] - rot[2, 0]) / s
        x = (rot[0, 1] + rot[1, 0]) / s
        y = 0.25 * s
        z = (rot[1, 2] + rot[2, 1]) / s
    else:
        s = math.sqrt(1.0 + rot[2, 2] - rot[0, 0] - rot[1, 1]) * 2.0
        w = (rot[1, 0] - rot[0, 1]) / s
        x = (rot[0, 2] + rot[2, 0]) / s
        y = (rot[1, 2] + rot[2, 1]) / s
        z = 0.25 * s
    q = np.array([x, y, z, w], dtype=np.float64)
    q /= np.linalg.norm(q)
    return (float(q[0]), float(q[1]), float(q[2]), float(q[3]))


def decompose_matrix(matrix: Sequence[float]) -> Transform:
    # glTF stores column-major; transpose to row-major
    m = np.array(matrix, dtype=np.float64).reshape(4, 4).T
    translation = m[0:3, 3]
    basis = m[0:3, 0:3]
    scale = np.linalg.norm(basis, axis=0)
    if np.linalg.det(basis) < 0.0:
        scale[0] = -scale[0]

    rot = np.eye(3, dtype=np.float64)
    for axis in range(3):
        if scale[axis] != 0.0:
            rot[:, axis] = basis[:, axis] / scale[axis]

    return Transform(
        translation=(float(translation[0]), float(translation[1]), float(translation[2])),
        rotation=quaternion_from_rotation(rot),
        scale=(float(scale[0]), float(scale[1]), float(scale[2])),
    )


def node_transform(node) -> Transform:
    """Local transform of a glTF node, from ``matrix`` or TRS with glTF defaults."""
    if node.matrix:
        return decompose_matrix(node.matrix)
    return Transform(
        translation=tuple(float(v) for v in (node.translation or IDENTITY_TRANSLATION)),
        rotation=tuple(float(v) for v in (node.rotation or IDENTITY_ROTATION)),
        scale=tuple(float(v) for v in (node.scale or IDENTITY_SCALE)),
    )
