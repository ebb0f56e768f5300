from __future__ import annotations

from dataclasses import dataclass, field


DEFAULT_LIGHTING_MODEL = "Pbr"
LIGHTING_MODEL_EXTRAS_KEY = "lighting_model"


@dataclass
class Material:
    id: int
    albedo: list[float] = field(default_factory=lambda: [1.0, 1.0, 1.0, 1.0])
    roughness: float = 1.0
    metallic: float = 1.0
    ao: float = 1.0
    lighting_model: str = DEFAULT_LIGHTING_MODEL  # resolved to an engine id at load time

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "albedo": list(self.albedo),
            "roughness": self.roughness,
            "metallic": self.metallic,
            "ao": self.ao,
            "lighting_model": self.lighting_model,
        }


def lighting_model_from_extras(extras: object) -> str:
    if isinstance(extras, dict):
        value = extras.get(LIGHTING_MODEL_EXTRAS_KEY)
        if isinstance(value, str) and value:
            return value
    elif isinstance(extras, str) and extras:
        return extras
    return DEFAULT_LIGHTING_MODEL


def extract_material(index: int, source) -> Material:
    mat = Material(id=index)
    pbr = source.pbrMetallicRoughness
    if pbr is not None:
        if pbr.baseColorFactor is not None:
            mat.albedo = [float(c) for c in pbr.baseColorFactor]
        if pbr.roughnessFactor is not None:
            mat.roughness = float(pbr.roughnessFactor)
        if pbr.metallicFactor is not None:
            mat.metallic = float(pbr.metallicFactor)
    occlusion = source.occlusionTexture
    if occlusion is not None and occlusion.strength is not None:
        mat.ao = float(occlusion.strength)
    mat.lighting_model = lighting_model_from_extras(source.extras)
    return mat


def extract_materials(gltf) -> list[Material]:
    return [extract_material(i, m) for i, m in enumerate(gltf.materials or [])]
