from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from .images import ImageAsset
from .materials import Material
from .scene_graph import Entity
from .vertex_packer import PackedMesh


DEFAULT_OUTPUT_ROOT = Path("scene")


class AssetEmitter:
    """Write converted assets under ``<root>/{scene.json,meshes,materials,images}``."""

    def __init__(self, output_root: str | Path = DEFAULT_OUTPUT_ROOT) -> None:
        self.output_root = Path(output_root)

    def _write_json(self, path: Path, value: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, indent=2), encoding="utf-8")
        return path

    def _write_bin(self, path: Path, data: bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def write_scene(self, entities: Iterable[Entity]) -> Path:
        return self._write_json(self.output_root / "scene.json", [e.to_json() for e in entities])

    def write_material(self, material: Material) -> Path:
        return self._write_json(self.output_root / "materials" / f"{material.id}.json", material.to_json())

    def write_mesh(self, mesh: PackedMesh) -> tuple[Path, Path]:
        out_dir = self.output_root / "meshes"
        return (
            self._write_json(out_dir / f"{mesh.index}.json", mesh.metadata()),
            self._write_bin(out_dir / f"{mesh.index}.bin", mesh.blob),
        )

    def write_image(self, image: ImageAsset) -> tuple[Path, Path]:
        out_dir = self.output_root / "images"
        return (
            self._write_json(out_dir / f"{image.index}.json", image.metadata()),
            self._write_bin(out_dir / f"{image.index}.bin", image.pixels),
        )
