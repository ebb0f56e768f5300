"""Thin adapter over ``pygltflib`` that resolves buffers and decodes accessors."""

from __future__ import annotations

import base64
import struct
from pathlib import Path
from urllib.parse import unquote

import numpy as np
import pygltflib

from .errors import InputNotFoundError, ParseFailureError
from .vertex_packer import TRIANGLES_MODE, PrimitiveData


COMPONENT_TYPE_INT8 = 5120
COMPONENT_TYPE_UINT8 = 5121
COMPONENT_TYPE_INT16 = 5122
COMPONENT_TYPE_UINT16 = 5123
COMPONENT_TYPE_UINT32 = 5125
COMPONENT_TYPE_FLOAT32 = 5126

COMPONENT_DTYPES: dict[int, str] = {
    COMPONENT_TYPE_INT8: "i1",
    COMPONENT_TYPE_UINT8: "u1",
    COMPONENT_TYPE_INT16: "<i2",
    COMPONENT_TYPE_UINT16: "<u2",
    COMPONENT_TYPE_UINT32: "<u4",
    COMPONENT_TYPE_FLOAT32: "<f4",
}

TYPE_COMPONENT_COUNT: dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Sparse indices are always unsigned.
SPARSE_INDEX_DTYPES: dict[int, str] = {
    COMPONENT_TYPE_UINT8: "u1",
    COMPONENT_TYPE_UINT16: "<u2",
    COMPONENT_TYPE_UINT32: "<u4",
}

# Divisors for normalized integer accessors (glTF 2.0 section 3.11).
NORMALIZED_DIVISORS: dict[int, float] = {
    COMPONENT_TYPE_INT8: 127.0,
    COMPONENT_TYPE_UINT8: 255.0,
    COMPONENT_TYPE_INT16: 32767.0,
    COMPONENT_TYPE_UINT16: 65535.0,
}


def decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if ";base64" in header:
        return base64.b64decode(payload)
    return unquote(payload).encode("latin-1")


class SceneDocument:
    def __init__(self, gltf: pygltflib.GLTF2, base_dir: Path | None = None, path: Path | None = None) -> None:
        self.gltf = gltf
        self.base_dir = base_dir or Path.cwd()
        self.path = path
        self._buffers: dict[int, bytes] = {}

    @classmethod
    def load(cls, path: str | Path) -> "SceneDocument":
        src = Path(path)
        if not src.is_file():
            raise InputNotFoundError(f"Input document not found: {src}")
        try:
            gltf = pygltflib.GLTF2.load(str(src))
        except (OSError, ValueError, KeyError, TypeError, struct.error) as exc:
            raise ParseFailureError(f"Failed to parse {src}: {exc}") from exc
        if gltf is None:
            raise ParseFailureError(f"Failed to parse {src}: not a glTF document.")
        return cls(gltf, base_dir=src.resolve().parent, path=src)

    def resolve_uri(self, uri: str) -> Path:
        return self.base_dir / unquote(uri)

    def buffer_bytes(self, index: int) -> bytes:
        cached = self._buffers.get(index)
        if cached is not None:
            return cached

        buffers = self.gltf.buffers or []
        if not 0 <= index < len(buffers):
            raise ParseFailureError(f"Buffer {index} does not exist.")
        uri = buffers[index].uri
        if not uri:
            data = self.gltf.binary_blob()
            if data is None:
                raise ParseFailureError(f"Buffer {index} has no URI and the document has no binary chunk.")
        elif uri.startswith("data:"):
            data = decode_data_uri(uri)
        else:
            try:
                data = self.resolve_uri(uri).read_bytes()
            except OSError as exc:
                raise ParseFailureError(f"Buffer {index}: cannot read '{uri}': {exc}") from exc

        self._buffers[index] = bytes(data)
        return self._buffers[index]

    def buffer_view_bytes(self, index: int) -> bytes:
        views = self.gltf.bufferViews or []
        if not 0 <= index < len(views):
            raise ParseFailureError(f"Buffer view {index} does not exist.")
        view = views[index]
        blob = self.buffer_bytes(view.buffer)
        start = view.byteOffset or 0
        end = start + view.byteLength
        if end > len(blob):
            raise ParseFailureError(f"Buffer view {index} overruns buffer {view.buffer}.")
        return blob[start:end]

    def buffer_view_stride(self, index: int) -> int | None:
        views = self.gltf.bufferViews or []
        if not 0 <= index < len(views):
            raise ParseFailureError(f"Buffer view {index} does not exist.")
        return views[index].byteStride

    def _view_array(
        self, label: str, view_index: int, offset: int, count: int, dtype: str, num_components: int, stride: int | None = None
    ) -> np.ndarray:
        blob = self.buffer_view_bytes(view_index)
        itemsize = np.dtype(dtype).itemsize
        element_size = num_components * itemsize
        stride = stride or element_size
        if count and offset + (count - 1) * stride + element_size > len(blob):
            raise ParseFailureError(f"{label} overruns buffer view {view_index}.")
        return np.ndarray(
            shape=(count, num_components),
            dtype=dtype,
            buffer=blob,
            offset=offset,
            strides=(stride, itemsize),
        ).copy()

    def _apply_sparse(self, index: int, sparse, data: np.ndarray) -> np.ndarray:
        """Overwrite the elements named by a sparse block with its values."""
        count = sparse.count or 0
        if not count:
            return data
        index_dtype = SPARSE_INDEX_DTYPES.get(sparse.indices.componentType)
        if index_dtype is None:
            raise ParseFailureError(
                f"Accessor {index}: unsupported sparse index type {sparse.indices.componentType}."
            )
        targets = self._view_array(
            f"Accessor {index} sparse indices",
            sparse.indices.bufferView,
            sparse.indices.byteOffset or 0,
            count,
            index_dtype,
            1,
        ).reshape(count).astype(np.int64)
        if int(targets.max()) >= len(data):
            raise ParseFailureError(f"Accessor {index}: sparse index {int(targets.max())} is out of range.")
        data[targets] = self._view_array(
            f"Accessor {index} sparse values",
            sparse.values.bufferView,
            sparse.values.byteOffset or 0,
            count,
            data.dtype.str,
            data.shape[1],
        )
        return data

    def read_accessor(self, index: int) -> np.ndarray:
        """Decode an accessor to ``[count, components]`` (or ``[count]`` for scalars).

        Sparse blocks are applied on top of the base data (zeros when the
        accessor has no buffer view). Normalized integer data is returned as
        float32.
        """
        accessors = self.gltf.accessors or []
        if not 0 <= index < len(accessors):
            raise ParseFailureError(f"Accessor {index} does not exist.")
        accessor = accessors[index]

        dtype = COMPONENT_DTYPES.get(accessor.componentType)
        num_components = TYPE_COMPONENT_COUNT.get(accessor.type)
        if dtype is None or num_components is None:
            raise ParseFailureError(
                f"Accessor {index}: unsupported layout {accessor.componentType}/{accessor.type}."
            )
        count = accessor.count

        if accessor.bufferView is None:
            data = np.zeros((count, num_components), dtype=dtype)
        else:
            data = self._view_array(
                f"Accessor {index}",
                accessor.bufferView,
                accessor.byteOffset or 0,
                count,
                dtype,
                num_components,
                stride=self.buffer_view_stride(accessor.bufferView),
            )
        if accessor.sparse is not None:
            data = self._apply_sparse(index, accessor.sparse, data)

        if accessor.normalized and accessor.componentType in NORMALIZED_DIVISORS:
            data = data.astype(np.float32) / NORMALIZED_DIVISORS[accessor.componentType]
            data = np.maximum(data, -1.0)
        return data.reshape(count) if num_components == 1 else data

    def _optional_accessor(self, index: int | None) -> np.ndarray | None:
        if index is None:
            return None
        return self.read_accessor(index)

    def _float_channel(self, index: int | None) -> np.ndarray | None:
        data = self._optional_accessor(index)
        if data is None:
            return None
        if data.dtype.kind != "f":
            # Integer colors and UVs are read as normalized.
            divisor = NORMALIZED_DIVISORS.get(self.gltf.accessors[index].componentType, 1.0)
            data = data.astype(np.float32) / divisor
        return data.astype(np.float32, copy=False)

    def primitive_data(self, primitive: pygltflib.Primitive) -> PrimitiveData:
        attrs = primitive.attributes
        positions = self._optional_accessor(getattr(attrs, "POSITION", None))
        return PrimitiveData(
            positions=None if positions is None else positions.astype(np.float32, copy=False),
            normals=self._optional_accessor(getattr(attrs, "NORMAL", None)),
            colors=self._float_channel(getattr(attrs, "COLOR_0", None)),
            uv0=self._float_channel(getattr(attrs, "TEXCOORD_0", None)),
            uv1=self._float_channel(getattr(attrs, "TEXCOORD_1", None)),
            indices=self._optional_accessor(primitive.indices),
            mode=TRIANGLES_MODE if primitive.mode is None else primitive.mode,
        )

    def mesh_primitives(self, mesh_index: int) -> list[PrimitiveData]:
        mesh = (self.gltf.meshes or [])[mesh_index]
        return [self.primitive_data(p) for p in mesh.primitives or []]
