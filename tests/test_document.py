import numpy as np
import pygltflib
import pytest

from glb_converter.document import SceneDocument, decode_data_uri
from glb_converter.errors import InputNotFoundError, ParseFailureError

from conftest import BlobBuilder, build_sample_gltf


def document_from(builder: BlobBuilder, **kwargs) -> SceneDocument:
    gltf = pygltflib.GLTF2(
        accessors=builder.accessors,
        bufferViews=builder.views,
        buffers=[builder.data_uri_buffer()],
        **kwargs,
    )
    return SceneDocument(gltf)


def test_reads_float_and_index_accessors():
    b = BlobBuilder()
    pos = b.add_accessor(np.array([[1, 2, 3], [4, 5, 6]], dtype="<f4"), 5126, "VEC3")
    idx = b.add_accessor(np.array([0, 1, 1], dtype="<u4"), 5125, "SCALAR")
    doc = document_from(b)
    np.testing.assert_array_equal(doc.read_accessor(pos), [[1, 2, 3], [4, 5, 6]])
    assert doc.read_accessor(idx).tolist() == [0, 1, 1]


def test_interleaved_view_honours_byte_stride():
    b = BlobBuilder()
    interleaved = np.array([[1, 2, 3, 10, 20], [4, 5, 6, 30, 40]], dtype="<f4")
    view = b.add_view(interleaved.tobytes(), stride=20)
    b.accessors.append(pygltflib.Accessor(bufferView=view, byteOffset=0, componentType=5126, count=2, type="VEC3"))
    b.accessors.append(pygltflib.Accessor(bufferView=view, byteOffset=12, componentType=5126, count=2, type="VEC2"))
    doc = document_from(b)
    np.testing.assert_array_equal(doc.read_accessor(0), [[1, 2, 3], [4, 5, 6]])
    np.testing.assert_array_equal(doc.read_accessor(1), [[10, 20], [30, 40]])


def test_normalized_integers_become_floats():
    b = BlobBuilder()
    acc = b.add_accessor(np.array([[0, 65535], [32768, 0]], dtype="<u2"), 5123, "VEC2", normalized=True)
    doc = document_from(b)
    data = doc.read_accessor(acc)
    assert data.dtype == np.float32
    np.testing.assert_allclose(data, [[0.0, 1.0], [32768 / 65535, 0.0]], rtol=1e-6)


def test_accessor_without_view_is_zero_filled():
    gltf = pygltflib.GLTF2(accessors=[pygltflib.Accessor(componentType=5126, count=2, type="VEC3")])
    np.testing.assert_array_equal(SceneDocument(gltf).read_accessor(0), np.zeros((2, 3)))


def test_overrunning_accessor_is_a_parse_failure():
    b = BlobBuilder()
    view = b.add_view(bytes(8))
    b.accessors.append(pygltflib.Accessor(bufferView=view, componentType=5126, count=3, type="VEC3"))
    with pytest.raises(ParseFailureError):
        document_from(b).read_accessor(0)


def test_primitive_data_collects_channels():
    gltf, blob = build_sample_gltf()
    gltf.buffers = [pygltflib.Buffer(byteLength=len(blob))]
    gltf.set_binary_blob(blob)
    doc = SceneDocument(gltf)
    (first, second) = doc.mesh_primitives(0)
    assert first.positions.shape == (3, 3)
    np.testing.assert_allclose(first.colors, [[1, 0, 0, 1]] * 3)
    assert first.indices.tolist() == [0, 1, 2]
    assert second.normals is None
    assert second.indices is None
    assert doc.mesh_primitives(1)[0].positions is None


def test_decode_data_uri_plain_and_base64():
    assert decode_data_uri("data:application/octet-stream;base64,AAEC") == b"\x00\x01\x02"
    assert decode_data_uri("data:text/plain,a%20b") == b"a b"


def test_external_buffer_is_read_relative_to_document(tmp_path):
    raw = np.array([7, 8, 9], dtype="<u4").tobytes()
    (tmp_path / "geo.bin").write_bytes(raw)
    gltf = pygltflib.GLTF2(
        buffers=[pygltflib.Buffer(uri="geo.bin", byteLength=len(raw))],
        bufferViews=[pygltflib.BufferView(buffer=0, byteOffset=0, byteLength=len(raw))],
        accessors=[pygltflib.Accessor(bufferView=0, componentType=5125, count=3, type="SCALAR")],
    )
    doc = SceneDocument(gltf, base_dir=tmp_path)
    assert doc.read_accessor(0).tolist() == [7, 8, 9]


def test_load_missing_file(tmp_path):
    with pytest.raises(InputNotFoundError):
        SceneDocument.load(tmp_path / "nope.glb")


def test_load_garbage_gltf(tmp_path):
    path = tmp_path / "broken.gltf"
    path.write_text("{ this is not json", encoding="utf-8")
    with pytest.raises(ParseFailureError):
        SceneDocument.load(path)


def test_load_glb_roundtrip(sample_glb):
    doc = SceneDocument.load(sample_glb)
    assert len(doc.gltf.meshes) == 2
    assert doc.read_accessor(0).shape == (3, 3)


def sparse_block(builder: BlobBuilder, targets, values, index_type=5123, index_dtype="<u2") -> pygltflib.Sparse:
    index_view = builder.add_view(np.array(targets, dtype=index_dtype).tobytes())
    value_view = builder.add_view(np.ascontiguousarray(values).tobytes())
    return pygltflib.Sparse(
        count=len(targets),
        indices=pygltflib.AccessorSparseIndices(bufferView=index_view, byteOffset=0, componentType=index_type),
        values=pygltflib.AccessorSparseValues(bufferView=value_view, byteOffset=0),
    )


def test_sparse_values_overwrite_base_data():
    b = BlobBuilder()
    acc = b.add_accessor(np.zeros((4, 3), dtype="<f4"), 5126, "VEC3")
    b.accessors[acc].sparse = sparse_block(b, [1, 3], np.array([[1, 2, 3], [4, 5, 6]], dtype="<f4"))
    data = document_from(b).read_accessor(acc)
    np.testing.assert_array_equal(data, [[0, 0, 0], [1, 2, 3], [0, 0, 0], [4, 5, 6]])


def test_sparse_without_view_starts_from_zeros():
    b = BlobBuilder()
    sparse = sparse_block(b, [2], np.array([7], dtype="<u4"), index_type=5121, index_dtype="u1")
    b.accessors.append(pygltflib.Accessor(componentType=5125, count=3, type="SCALAR", sparse=sparse))
    assert document_from(b).read_accessor(0).tolist() == [0, 0, 7]


def test_sparse_index_out_of_range_is_a_parse_failure():
    b = BlobBuilder()
    sparse = sparse_block(b, [5], np.array([1.0], dtype="<f4"))
    b.accessors.append(pygltflib.Accessor(componentType=5126, count=2, type="SCALAR", sparse=sparse))
    with pytest.raises(ParseFailureError):
        document_from(b).read_accessor(0)
