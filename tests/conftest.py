import base64
import io

import numpy as np
import pygltflib
import pytest
from PIL import Image


class BlobBuilder:
    """Collects buffer views and accessors for small hand-built documents."""

    def __init__(self):
        self.blob = bytearray()
        self.views: list[pygltflib.BufferView] = []
        self.accessors: list[pygltflib.Accessor] = []

    def add_view(self, data: bytes, stride: int | None = None) -> int:
        while len(self.blob) % 4:
            self.blob.append(0)
        self.views.append(
            pygltflib.BufferView(buffer=0, byteOffset=len(self.blob), byteLength=len(data), byteStride=stride)
        )
        self.blob.extend(data)
        return len(self.views) - 1

    def add_accessor(self, array: np.ndarray, component_type: int, type_name: str, normalized: bool = False) -> int:
        view = self.add_view(np.ascontiguousarray(array).tobytes())
        self.accessors.append(
            pygltflib.Accessor(
                bufferView=view,
                componentType=component_type,
                count=len(array),
                type=type_name,
                normalized=normalized,
            )
        )
        return len(self.accessors) - 1

    def data_uri_buffer(self) -> pygltflib.Buffer:
        payload = base64.b64encode(bytes(self.blob)).decode("ascii")
        return pygltflib.Buffer(uri=f"data:application/octet-stream;base64,{payload}", byteLength=len(self.blob))


def png_bytes(mode: str, size: tuple[int, int], color) -> bytes:
    out = io.BytesIO()
    Image.new(mode, size, color).save(out, format="PNG")
    return out.getvalue()


def build_sample_gltf(external_image: str | None = None) -> tuple[pygltflib.GLTF2, bytes]:
    b = BlobBuilder()
    positions = b.add_accessor(np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype="<f4"), 5126, "VEC3")
    normals = b.add_accessor(np.array([[0, 0, 1]] * 3, dtype="<f4"), 5126, "VEC3")
    uvs = b.add_accessor(np.array([[0, 0], [1, 0], [0, 1]], dtype="<f4"), 5126, "VEC2")
    colors = b.add_accessor(np.array([[255, 0, 0, 255]] * 3, dtype="u1"), 5121, "VEC4", normalized=True)
    indices = b.add_accessor(np.array([0, 1, 2], dtype="<u2"), 5123, "SCALAR")
    image_view = b.add_view(png_bytes("RGB", (2, 2), (10, 20, 30)))
    broken_view = b.add_view(b"definitely not an image")

    images = [
        pygltflib.Image(bufferView=image_view, mimeType="image/png"),
        pygltflib.Image(bufferView=broken_view, mimeType="image/png"),
    ]
    if external_image:
        images.append(pygltflib.Image(uri=external_image))

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[0, 3])],
        nodes=[
            pygltflib.Node(name="root", children=[1, 2], translation=[0, 1, 0]),
            pygltflib.Node(name="body", mesh=0, extras={"Health": 10}),
            pygltflib.Node(name="eye", camera=0, extensions={"KHR_lights_punctual": {"light": 0}}),
            pygltflib.Node(name="ghost", mesh=1),
        ],
        meshes=[
            pygltflib.Mesh(
                primitives=[
                    pygltflib.Primitive(
                        attributes=pygltflib.Attributes(POSITION=positions, NORMAL=normals, TEXCOORD_0=uvs, COLOR_0=colors),
                        indices=indices,
                    ),
                    pygltflib.Primitive(attributes=pygltflib.Attributes(POSITION=positions, TEXCOORD_0=uvs)),
                ]
            ),
            pygltflib.Mesh(primitives=[pygltflib.Primitive(attributes=pygltflib.Attributes(NORMAL=normals))]),
        ],
        materials=[
            pygltflib.Material(
                pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
                    baseColorFactor=[0.5, 0.5, 0.5, 1.0], metallicFactor=0.0, roughnessFactor=0.25
                ),
                extras={"lighting_model": "Unlit"},
            ),
            pygltflib.Material(),
        ],
        cameras=[pygltflib.Camera(type="perspective", perspective=pygltflib.Perspective(yfov=1.0, znear=0.01, zfar=50.0))],
        extensions={"KHR_lights_punctual": {"lights": [{"type": "point", "intensity": 2.0}]}},
        extensionsUsed=["KHR_lights_punctual"],
        images=images,
        accessors=b.accessors,
        bufferViews=b.views,
        buffers=[pygltflib.Buffer(byteLength=len(b.blob))],
    )
    return gltf, bytes(b.blob)


@pytest.fixture
def sample_glb(tmp_path):
    Image.new("L", (3, 1), 200).save(tmp_path / "side texture.png")
    gltf, blob = build_sample_gltf(external_image="side%20texture.png")
    gltf.set_binary_blob(blob)
    path = tmp_path / "sample.glb"
    gltf.save(str(path))
    return path
