"""Build the output entity graph from a glTF node forest.

Pass 1 walks every scene root depth-first, creates one entity per reachable
node and records which entity id each source node index received. Pass 2
walks the same nodes again and links every parent/child edge through that
table. Ids must all exist before any edge can be resolved.
"""

from __future__ import annotations

import itertools
import json
import math
import threading
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .errors import DanglingReferenceError
from .transforms import Transform, node_transform


KHR_LIGHTS_PUNCTUAL = "KHR_lights_punctual"
NO_PARENT = -1

DEFAULT_LIGHT_COLOR = (1.0, 1.0, 1.0)
DEFAULT_LIGHT_INTENSITY = 1.0
DEFAULT_SPOT_INNER_ANGLE = 0.0
DEFAULT_SPOT_OUTER_ANGLE = math.pi / 4.0


class IdAllocator:
    """Monotonic entity id source. Ids are never reused; allocation is atomic."""

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def allocate(self) -> int:
        with self._lock:
            return next(self._counter)


@dataclass(frozen=True)
class OrthographicCamera:
    kind: ClassVar[str] = "Orthographic"
    xmag: float
    ymag: float
    zfar: float
    znear: float

    def to_json(self) -> dict[str, Any]:
        return {"type": self.kind, "xmag": self.xmag, "ymag": self.ymag, "zfar": self.zfar, "znear": self.znear}


@dataclass(frozen=True)
class PerspectiveCamera:
    kind: ClassVar[str] = "Perspective"
    yfov: float
    zfar: float | None
    znear: float
    aspect_ratio: float | None

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "yfov": self.yfov,
            "zfar": self.zfar,
            "znear": self.znear,
            "aspect_ratio": self.aspect_ratio,
        }


@dataclass(frozen=True)
class DirectionalLight:
    kind: ClassVar[str] = "Directional"
    color: tuple[float, float, float]
    intensity: float

    def to_json(self) -> dict[str, Any]:
        return {"type": self.kind, "color": list(self.color), "intensity": self.intensity}


@dataclass(frozen=True)
class PointLight:
    kind: ClassVar[str] = "Point"
    color: tuple[float, float, float]
    intensity: float
    range: float | None

    def to_json(self) -> dict[str, Any]:
        return {"type": self.kind, "color": list(self.color), "intensity": self.intensity, "range": self.range}


@dataclass(frozen=True)
class SpotLight:
    kind: ClassVar[str] = "Spot"
    color: tuple[float, float, float]
    intensity: float
    range: float | None
    inner_angle: float
    outer_angle: float

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "color": list(self.color),
            "intensity": self.intensity,
            "range": self.range,
            "inner_angle": self.inner_angle,
            "outer_angle": self.outer_angle,
        }


Camera = OrthographicCamera | PerspectiveCamera
Light = DirectionalLight | PointLight | SpotLight

TYPED_COMPONENT_KEYS = ("Transform", "Mesh", "Name", "Camera", "Light")


@dataclass
class Components:
    transform: Transform = field(default_factory=Transform)
    mesh: int | None = None
    name: str | None = None
    camera: Camera | None = None
    light: Light | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Transform": self.transform.to_json()}
        if self.mesh is not None:
            out["Mesh"] = self.mesh
        if self.name is not None:
            out["Name"] = self.name
        if self.camera is not None:
            out["Camera"] = self.camera.to_json()
        if self.light is not None:
            out["Light"] = self.light.to_json()
        for key, value in self.extras.items():
            out[key] = value
        return out


@dataclass
class Entity:
    id: int
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    components: Components = field(default_factory=Components)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "children": list(self.children),
            "parent": NO_PARENT if self.parent is None else self.parent,
            "components": self.components.to_json(),
        }


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def extract_camera(camera: Any) -> Camera | None:
    kind = str(_get(camera, "type", "")).lower()
    if kind == "orthographic":
        ortho = _get(camera, "orthographic")
        return OrthographicCamera(
            xmag=float(_get(ortho, "xmag", 0.0)),
            ymag=float(_get(ortho, "ymag", 0.0)),
            zfar=float(_get(ortho, "zfar", 0.0)),
            znear=float(_get(ortho, "znear", 0.0)),
        )
    if kind == "perspective":
        persp = _get(camera, "perspective")
        return PerspectiveCamera(
            yfov=float(_get(persp, "yfov", 0.0)),
            zfar=_optional_float(_get(persp, "zfar")),
            znear=float(_get(persp, "znear", 0.0)),
            aspect_ratio=_optional_float(_get(persp, "aspectRatio")),
        )
    return None


def extract_light(light: Any) -> Light | None:
    kind = str(_get(light, "type", "")).lower()
    color = tuple(float(c) for c in _get(light, "color", DEFAULT_LIGHT_COLOR))[:3]
    intensity = float(_get(light, "intensity", DEFAULT_LIGHT_INTENSITY))
    light_range = _optional_float(_get(light, "range"))
    if kind == "directional":
        return DirectionalLight(color=color, intensity=intensity)
    if kind == "point":
        return PointLight(color=color, intensity=intensity, range=light_range)
    if kind == "spot":
        spot = _get(light, "spot", {})
        return SpotLight(
            color=color,
            intensity=intensity,
            range=light_range,
            inner_angle=float(_get(spot, "innerConeAngle", DEFAULT_SPOT_INNER_ANGLE)),
            outer_angle=float(_get(spot, "outerConeAngle", DEFAULT_SPOT_OUTER_ANGLE)),
        )
    return None


def parse_extras(extras: Any) -> dict[str, Any]:
    if isinstance(extras, str):
        try:
            extras = json.loads(extras)
        except ValueError:
            return {}
    if isinstance(extras, dict):
        return dict(extras)
    return {}


class SceneGraphBuilder:
    def __init__(self, gltf, allocator: IdAllocator | None = None, warnings: list[str] | None = None) -> None:
        self.gltf = gltf
        self.allocator = allocator or IdAllocator()
        self.warnings = warnings if warnings is not None else []
        self._nodes = list(gltf.nodes or [])
        self._lights = list(_get(_get(gltf.extensions, KHR_LIGHTS_PUNCTUAL), "lights", []))
        self._entity_for_node: dict[int, int] = {}
        self._visit_order: list[int] = []
        self._root_nodes: set[int] = set()

    def build(self) -> list[Entity]:
        self._entity_for_node = {}
        self._visit_order = []
        self._root_nodes = set()
        entities = self._create_entities()
        by_id = {e.id: e for e in entities}
        for parent_index in self._visit_order:
            for child_index in self._nodes[parent_index].children or []:
                try:
                    parent_id, child_id = self.resolve_edge(parent_index, child_index)
                except DanglingReferenceError as exc:
                    self.warnings.append(f"{exc} Edge skipped.")
                    continue
                if child_index in self._root_nodes:
                    self.warnings.append(f"Node {child_index} is a scene root; edge from node {parent_index} skipped.")
                    continue
                child = by_id[child_id]
                if child.parent is not None:
                    self.warnings.append(
                        f"Node {child_index} already has parent entity {child.parent}; edge from node {parent_index} skipped."
                    )
                    continue
                if self._is_ancestor(by_id, child_id, parent_id):
                    self.warnings.append(
                        f"Edge from node {parent_index} to node {child_index} would form a cycle; skipped."
                    )
                    continue
                by_id[parent_id].children.append(child_id)
                child.parent = parent_id
        return entities

    def resolve_edge(self, parent_index: int, child_index: int) -> tuple[int, int]:
        ids = []
        for node_index in (parent_index, child_index):
            entity_id = self._entity_for_node.get(node_index)
            if entity_id is None:
                raise DanglingReferenceError(f"Node {node_index} has no entity.")
            ids.append(entity_id)
        return ids[0], ids[1]

    @staticmethod
    def _is_ancestor(by_id: dict[int, Entity], candidate: int, entity_id: int) -> bool:
        current: int | None = entity_id
        while current is not None:
            if current == candidate:
                return True
            current = by_id[current].parent
        return False

    def _create_entities(self) -> list[Entity]:
        entities: list[Entity] = []
        for scene_index, scene in enumerate(self.gltf.scenes or []):
            self._root_nodes.update(scene.nodes or [])
            stack = list(reversed(scene.nodes or []))
            while stack:
                node_index = stack.pop()
                if node_index in self._entity_for_node:
                    continue
                if not 0 <= node_index < len(self._nodes):
                    self.warnings.append(f"Scene {scene_index}: node index {node_index} is out of range.")
                    continue
                node = self._nodes[node_index]
                entity = Entity(id=self.allocator.allocate(), components=self.node_components(node, node_index))
                self._entity_for_node[node_index] = entity.id
                self._visit_order.append(node_index)
                entities.append(entity)
                stack.extend(reversed(node.children or []))
        return entities

    def node_components(self, node, node_index: int) -> Components:
        components = Components(transform=node_transform(node))
        if node.mesh is not None:
            components.mesh = int(node.mesh)
        if node.name is not None:
            components.name = node.name

        if node.camera is not None:
            cameras = self.gltf.cameras or []
            if 0 <= node.camera < len(cameras):
                components.camera = extract_camera(cameras[node.camera])
            else:
                self.warnings.append(f"Node {node_index} references missing camera {node.camera}.")

        light_index = _get(_get(node.extensions, KHR_LIGHTS_PUNCTUAL), "light")
        if light_index is not None:
            if 0 <= light_index < len(self._lights):
                components.light = extract_light(self._lights[light_index])
            else:
                self.warnings.append(f"Node {node_index} references missing light {light_index}.")

        for key, value in parse_extras(node.extras).items():
            if key in TYPED_COMPONENT_KEYS:
                self.warnings.append(f"Node {node_index} extras key '{key}' shadows a built-in component; dropped.")
                continue
            components.extras[key] = value
        return components


def build_scene_graph(gltf, allocator: IdAllocator | None = None, warnings: list[str] | None = None) -> list[Entity]:
    return SceneGraphBuilder(gltf, allocator=allocator, warnings=warnings).build()
