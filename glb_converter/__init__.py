"""Convert glTF/GLB scenes into engine-ready JSON and packed binary assets."""

from .converter import ConversionSummary, convert_document
from .pixels import PixelFormat, normalize_pixels
from .scene_graph import Entity, IdAllocator, build_scene_graph
from .tangents import generate_tangents
from .vertex_packer import VERTEX_STRIDE, PackedMesh, PrimitiveData, pack_mesh

__all__ = [
    "ConversionSummary",
    "Entity",
    "IdAllocator",
    "PackedMesh",
    "PixelFormat",
    "PrimitiveData",
    "VERTEX_STRIDE",
    "build_scene_graph",
    "convert_document",
    "generate_tangents",
    "normalize_pixels",
    "pack_mesh",
]
