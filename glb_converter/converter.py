"""Convert one glTF/GLB document into the engine asset tree.

Output layout under the output root:
- scene.json               entity graph
- materials/<i>.json       one record per material
- meshes/<i>.json|.bin     submesh metadata and packed vertex/index blob
- images/<i>.json|.bin     width/height and raw RGBA8 pixels

A mesh or image that fails to convert is reported in the summary warnings and
skipped; the remaining assets are still written. Failing to load the document
itself is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .document import SceneDocument
from .emitter import DEFAULT_OUTPUT_ROOT, AssetEmitter
from .errors import ConverterError
from .images import load_image
from .materials import extract_materials
from .scene_graph import IdAllocator, build_scene_graph
from .vertex_packer import pack_mesh


@dataclass
class ConversionSummary:
    input_path: str
    output_dir: str
    entities: int = 0
    materials: int = 0
    meshes: int = 0
    images: int = 0
    failed_meshes: int = 0
    failed_images: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_outputs(self) -> int:
        return self.materials + self.meshes + self.images


def convert_document(
    input_path: str | Path,
    output_root: str | Path = DEFAULT_OUTPUT_ROOT,
    allocator: IdAllocator | None = None,
) -> ConversionSummary:
    document = SceneDocument.load(input_path)
    emitter = AssetEmitter(output_root)
    summary = ConversionSummary(
        input_path=str(Path(input_path).resolve()),
        output_dir=str(emitter.output_root.resolve()),
    )
    gltf = document.gltf

    entities = build_scene_graph(gltf, allocator=allocator, warnings=summary.warnings)
    emitter.write_scene(entities)
    summary.entities = len(entities)

    for material in extract_materials(gltf):
        emitter.write_material(material)
        summary.materials += 1

    for mesh_index in range(len(gltf.meshes or [])):
        try:
            packed = pack_mesh(mesh_index, document.mesh_primitives(mesh_index), summary.warnings)
        except ConverterError as exc:
            summary.failed_meshes += 1
            summary.warnings.append(f"Mesh {mesh_index} skipped: {exc}")
            continue
        emitter.write_mesh(packed)
        summary.meshes += 1

    for image_index in range(len(gltf.images or [])):
        try:
            image = load_image(document, image_index)
        except ConverterError as exc:
            summary.failed_images += 1
            summary.warnings.append(f"Image {image_index} skipped: {exc}")
            continue
        emitter.write_image(image)
        summary.images += 1

    return summary
