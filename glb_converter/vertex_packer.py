"""Pack mesh primitives into one vertex/index blob per mesh.

Blob layout, repeated per primitive in source order:
- Vertex records: fixed 80-byte stride (see ``VERTEX_DTYPE``)
- Index buffer: u32 little-endian triangle list, original winding

Each submesh records its ``[start, end)`` byte range in the blob, the absolute
byte offset of its index array and its index count. Ranges are contiguous.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .errors import MalformedPrimitiveError
from .tangents import generate_tangents


TRIANGLES_MODE = 4

# Explicit offsets keep every field on a 16-byte boundary; the gaps are padding.
VERTEX_DTYPE = np.dtype(
    {
        "names": ["position", "color", "normal", "tangent", "uv"],
        "formats": [("<f4", (3,)), ("<f4", (3,)), ("<f4", (3,)), ("<f4", (4,)), ("<f4", (4,))],
        "offsets": [0, 16, 32, 48, 64],
        "itemsize": 80,
    }
)
VERTEX_STRIDE = VERTEX_DTYPE.itemsize
INDEX_STRIDE = 4

DEFAULT_NORMAL = (0.0, 0.0, 0.0)
DEFAULT_COLOR = (1.0, 1.0, 1.0)
DEFAULT_UV = (0.0, 0.0)


@dataclass
class PrimitiveData:
    positions: np.ndarray | None
    normals: np.ndarray | None = None
    colors: np.ndarray | None = None
    uv0: np.ndarray | None = None
    uv1: np.ndarray | None = None
    indices: np.ndarray | None = None
    mode: int = TRIANGLES_MODE


@dataclass(frozen=True)
class SubmeshInfo:
    range: tuple[int, int]
    index_byte_offset: int
    index_count: int
    vertex_count: int


@dataclass
class PackedMesh:
    index: int
    blob: bytes
    submeshes: list[SubmeshInfo] = field(default_factory=list)

    def metadata(self) -> dict[str, list]:
        return {
            "Submesh Ranges": [list(s.range) for s in self.submeshes],
            "Index Offsets": [s.index_byte_offset for s in self.submeshes],
            "Index Number": [s.index_count for s in self.submeshes],
        }


def _channel(values: np.ndarray | None, count: int, width: int, default: tuple[float, ...]) -> np.ndarray:
    out = np.empty((count, width), dtype=np.float32)
    out[:] = default
    if values is None:
        return out
    arr = np.asarray(values, dtype=np.float32)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    rows = min(count, len(arr))
    cols = min(width, arr.shape[1])
    out[:rows, :cols] = arr[:rows, :cols]
    return out


def validated_positions(positions: np.ndarray) -> np.ndarray:
    arr = np.asarray(positions, dtype=np.float32)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise MalformedPrimitiveError(f"POSITION must be a VEC3 channel, got shape {arr.shape}.")
    return arr


def build_vertices(primitive: PrimitiveData) -> np.ndarray:
    """Build uniform vertex records and fill in tangents.

    Missing or short optional channels fall back to defaults so every record
    has the same shape.
    """
    if primitive.positions is None:
        return np.zeros(0, dtype=VERTEX_DTYPE)

    positions = validated_positions(primitive.positions)
    count = len(positions)

    vertices = np.zeros(count, dtype=VERTEX_DTYPE)
    vertices["position"] = positions
    vertices["color"] = _channel(primitive.colors, count, 3, DEFAULT_COLOR)
    uv0 = _channel(primitive.uv0, count, 2, DEFAULT_UV)
    uv1 = _channel(primitive.uv1, count, 2, DEFAULT_UV)
    vertices["uv"][:, 0:2] = uv0
    vertices["uv"][:, 2:4] = uv1

    tangents, normals = generate_tangents(
        positions,
        _channel(primitive.normals, count, 3, DEFAULT_NORMAL),
        uv0,
        primitive_indices(primitive),
    )
    vertices["normal"] = normals
    vertices["tangent"] = tangents
    return vertices


def primitive_indices(primitive: PrimitiveData) -> np.ndarray:
    if primitive.positions is None:
        return np.zeros(0, dtype="<u4")
    if primitive.indices is None:
        count = len(validated_positions(primitive.positions))
        return np.arange(count, dtype="<u4")
    return np.asarray(primitive.indices).reshape(-1).astype("<u4")


def pack_primitive(primitive: PrimitiveData) -> tuple[bytes, int, int]:
    vertices = build_vertices(primitive)
    indices = primitive_indices(primitive)
    return vertices.tobytes() + indices.tobytes(), len(vertices), len(indices)


def pack_mesh(
    mesh_index: int,
    primitives: list[PrimitiveData],
    warnings: list[str] | None = None,
) -> PackedMesh:
    out = bytearray()
    submeshes: list[SubmeshInfo] = []

    for prim_index, primitive in enumerate(primitives):
        if primitive.positions is None and warnings is not None:
            warnings.append(
                f"Mesh {mesh_index} primitive {prim_index}: MissingRequiredChannel POSITION, packed as empty submesh."
            )
        if primitive.mode != TRIANGLES_MODE and warnings is not None:
            warnings.append(
                f"Mesh {mesh_index} primitive {prim_index}: topology mode {primitive.mode} packed as a triangle list."
            )

        data, vertex_count, index_count = pack_primitive(primitive)
        start = len(out)
        out.extend(data)
        submeshes.append(
            SubmeshInfo(
                range=(start, len(out)),
                index_byte_offset=start + vertex_count * VERTEX_STRIDE,
                index_count=index_count,
                vertex_count=vertex_count,
            )
        )

    return PackedMesh(index=mesh_index, blob=bytes(out), submeshes=submeshes)
