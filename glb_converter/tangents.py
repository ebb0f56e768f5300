"""Per-vertex tangent frames for triangle-list geometry.

Tangents and bitangents are accumulated from every triangle with a usable UV
mapping, averaged per vertex, then Gram-Schmidt orthogonalized against the
normal. The w component stores handedness so a consumer can rebuild the
bitangent as ``cross(normal, tangent.xyz) * tangent.w``.
"""

from __future__ import annotations

import numpy as np

from .errors import MalformedPrimitiveError


UV_DENOM_EPSILON = 1e-8
TANGENT_LENGTH2_EPSILON = 1e-8
FALLBACK_TANGENT = (1.0, 0.0, 0.0)


def triangle_list(indices: np.ndarray, vertex_count: int) -> np.ndarray:
    flat = np.asarray(indices, dtype=np.int64).reshape(-1)
    tri = flat[: (len(flat) // 3) * 3].reshape(-1, 3)
    if tri.size and (int(tri.min()) < 0 or int(tri.max()) >= vertex_count):
        raise MalformedPrimitiveError(
            f"Triangle index {int(tri.max())} out of range for {vertex_count} vertices."
        )
    return tri


def accumulate_tangents(
    positions: np.ndarray,
    uvs: np.ndarray,
    tri: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    vertex_count = len(positions)
    tan_sum = np.zeros((vertex_count, 3), dtype=np.float64)
    bitan_sum = np.zeros((vertex_count, 3), dtype=np.float64)
    counts = np.zeros(vertex_count, dtype=np.int64)
    if len(tri) == 0:
        return tan_sum, bitan_sum, counts

    p0 = positions[tri[:, 0]]
    p1 = positions[tri[:, 1]]
    p2 = positions[tri[:, 2]]
    uv0 = uvs[tri[:, 0]]
    uv1 = uvs[tri[:, 1]]
    uv2 = uvs[tri[:, 2]]

    e1 = p1 - p0
    e2 = p2 - p0
    d1 = uv1 - uv0
    d2 = uv2 - uv0

    denom = d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0]
    # Degenerate UV mapping: the triangle contributes nothing.
    keep = np.abs(denom) >= UV_DENOM_EPSILON
    if not np.any(keep):
        return tan_sum, bitan_sum, counts

    tri = tri[keep]
    e1, e2, d1, d2 = e1[keep], e2[keep], d1[keep], d2[keep]
    r = (1.0 / denom[keep])[:, None]

    tangent = (e1 * d2[:, 1:2] - e2 * d1[:, 1:2]) * r
    bitangent = (e2 * d1[:, 0:1] - e1 * d2[:, 0:1]) * -r

    for corner in range(3):
        np.add.at(tan_sum, tri[:, corner], tangent)
        np.add.at(bitan_sum, tri[:, corner], bitangent)
    counts += np.bincount(tri.reshape(-1), minlength=vertex_count)
    return tan_sum, bitan_sum, counts


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1)
    out = np.zeros_like(vectors)
    nonzero = lengths > 0.0
    out[nonzero] = vectors[nonzero] / lengths[nonzero, None]
    return out


def generate_tangents(
    positions: np.ndarray,
    normals: np.ndarray,
    uvs: np.ndarray,
    indices: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(tangents[N, 4], normals[N, 3])`` as float32 arrays.

    Vertices untouched by any usable triangle average to a zero tangent and
    end up with the fallback X axis. A zero-length normal stays zero.
    """
    pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    nrm = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    uv = np.asarray(uvs, dtype=np.float64).reshape(-1, 2)
    vertex_count = len(pos)

    tri = triangle_list(indices, vertex_count)
    tan_sum, bitan_sum, counts = accumulate_tangents(pos, uv, tri)

    divisor = np.maximum(counts, 1).astype(np.float64)[:, None]
    tan_avg = tan_sum / divisor
    bitan_avg = bitan_sum / divisor

    nrm = _normalize_rows(nrm)
    tan = tan_avg - nrm * np.sum(nrm * tan_avg, axis=1, keepdims=True)

    length2 = np.sum(tan * tan, axis=1)
    fallback = ~np.isfinite(length2) | (length2 < TANGENT_LENGTH2_EPSILON)
    tan[fallback] = FALLBACK_TANGENT
    tan[~fallback] /= np.sqrt(length2[~fallback])[:, None]

    handedness = np.where(np.sum(np.cross(nrm, tan) * bitan_avg, axis=1) < 0.0, -1.0, 1.0)

    out = np.empty((vertex_count, 4), dtype=np.float32)
    out[:, :3] = tan
    out[:, 3] = handedness
    return out, nrm.astype(np.float32)
