import math

import pygltflib
import pytest

from glb_converter.transforms import decompose_matrix, node_transform


def test_rotation_about_z_is_decomposed():
    matrix = [0, 1, 0, 0, -1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]
    t = decompose_matrix(matrix)
    half = math.sqrt(0.5)
    assert t.rotation == pytest.approx((0.0, 0.0, half, half))
    assert t.scale == pytest.approx((1.0, 1.0, 1.0))


def test_mirrored_matrix_flips_x_scale():
    matrix = [-3, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1]
    t = decompose_matrix(matrix)
    assert t.scale == pytest.approx((-3.0, 1.0, 1.0))
    assert t.rotation == pytest.approx((0.0, 0.0, 0.0, 1.0))


def test_trs_node_uses_values_and_defaults():
    node = pygltflib.Node(translation=[1, 2, 3], rotation=[0, 0, 1, 0])
    t = node_transform(node)
    assert t.translation == (1.0, 2.0, 3.0)
    assert t.rotation == (0.0, 0.0, 1.0, 0.0)
    assert t.scale == (1.0, 1.0, 1.0)
    assert t.to_json()["rotation"] == [0.0, 0.0, 1.0, 0.0]
