"""The world: objects, lights and render settings, plus committed GPU state.

A ``World`` is assembled in Python from ``Object`` and light instances.
``commit()`` flattens it into the Taichi tables used by the kernels:

1. Groups with many children are partitioned into sub-groups by bounding
   box (``WorldSettings.group_size_threshold``).
2. The object tree is walked in preorder. Each node gets the composed
   transform (parent first), the inherited material (own, else nearest
   enclosing group or CSG, else the default material) and a padded
   world-space box. A composite node's ``skip`` points just past its
   subtree, and every node records its nearest enclosing CSG.
3. Distinct materials (by identity) and their patterns are uploaded, then
   the lights and background colour.

Only one world is committed at a time, since the tables are module-level.
Query methods commit on demand, so a world edited with ``add`` is re-uploaded
before the next query. Editing an object or material in place is not
tracked; call ``commit()`` again afterwards.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.scene.default_world import default_world
    >>> from src.whitted.core.ray import Ray3D
    >>> world = default_world()
    >>> world.colour_at(Ray3D((0, 0, -5), (0, 0, 1)))  # ~(0.38066, 0.47583, 0.2855)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.whitted.core.ray import Ray3D
from src.whitted.core.tracer import check_depth, set_background, trace_rays
from src.whitted.core.transform import Transform
from src.whitted.core.vectors import Point3D, Vector3D, as_point
from src.whitted.materials.material import Material, clear_materials, upload_materials
from src.whitted.materials.patterns import clear_patterns, upload_patterns
from src.whitted.scene import probes
from src.whitted.scene.intersection import (
    ArenaNode,
    Intersections,
    clear_arena,
    collect_intersections,
    upload_arena,
)
from src.whitted.scene.lights import Light, clear_lights, upload_lights
from src.whitted.scene.objects import Csg, Group, Object, _partition_object

logger = logging.getLogger(__name__)

Colour = tuple[float, float, float]


@dataclass
class WorldSettings:
    """Render settings of a world.

    Attributes:
        max_depth: Recursion depth for reflection and refraction rays.
        shadow_bias: Offset along the normal for shadow and secondary rays.
        background: Colour of rays that hit nothing.
        use_acceleration: Whether to cull by bounding box by default.
        group_size_threshold: Groups with at least this many children are
            partitioned on commit; values below 2 disable partitioning.

    Raises:
        ValueError: If max_depth is out of range or shadow_bias is negative.
    """

    max_depth: int = 5
    shadow_bias: float = 1e-4
    background: Colour = (0.0, 0.0, 0.0)
    use_acceleration: bool = True
    group_size_threshold: int = 8

    def __post_init__(self) -> None:
        check_depth(self.max_depth)
        if self.shadow_bias < 0.0:
            raise ValueError(f"Shadow bias must be non-negative, got {self.shadow_bias}")


# The world whose tables are currently uploaded
_active_world: World | None = None


class World:
    """A scene ready to be intersected and shaded.

    Args:
        objects: Top-level scene objects.
        lights: Light sources.
        settings: Render settings; defaults to ``WorldSettings()``.
    """

    def __init__(
        self,
        objects: list[Object] | None = None,
        lights: list[Light] | None = None,
        settings: WorldSettings | None = None,
    ) -> None:
        self.objects: list[Object] = list(objects or [])
        self.lights: list[Light] = list(lights or [])
        self.settings = settings or WorldSettings()
        self.default_material = Material()
        self._nodes: list[ArenaNode] = []
        self._dirty = True

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add(self, obj: Object) -> Object:
        """Add a top-level object and return it."""
        self.objects.append(obj)
        self._dirty = True
        return obj

    def add_light(self, light: Light) -> Light:
        """Add a light source and return it."""
        self.lights.append(light)
        self._dirty = True
        return light

    def commit(self) -> None:
        """Upload the world into the Taichi tables.

        Raises:
            RuntimeError: If any table capacity is exceeded.
        """
        global _active_world

        materials: list[Material] = []
        material_ids: dict[int, int] = {}

        def material_id(material: Material) -> int:
            key = id(material)
            if key not in material_ids:
                material_ids[key] = len(materials)
                materials.append(material)
            return material_ids[key]

        nodes: list[ArenaNode] = []

        def visit(
            obj: Object,
            parent: Transform,
            inherited: Material | None,
            parent_index: int,
            csg: int,
            csg_side: int,
        ) -> None:
            world_transform = parent @ obj.transform
            material = obj.material if obj.material is not None else inherited
            box = obj.shape.bounding_box().transformed(world_transform)

            index = len(nodes)
            nodes.append(
                ArenaNode(
                    kind=obj.shape.kind,
                    skip=index + 1,
                    material=0 if obj.is_composite else material_id(material or self.default_material),
                    inverse=world_transform.inverse(),
                    box=box.padded() if box.is_finite() else None,
                    shape=obj.shape.packed(),
                    source=obj,
                    parent=parent_index,
                    depth=0 if parent_index < 0 else nodes[parent_index].depth + 1,
                    csg=csg,
                    csg_side=csg_side,
                )
            )
            if obj.is_composite:
                is_csg = isinstance(obj.shape, Csg)
                for side, child in enumerate(obj.shape.children):
                    if is_csg:
                        visit(child, world_transform, material, index, index, side)
                    else:
                        visit(child, world_transform, material, index, csg, csg_side)
                nodes[index].skip = len(nodes)

        root = _partition_object(Object(Group(self.objects)), self.settings.group_size_threshold)
        for obj in root.shape.children:
            visit(obj, Transform.identity(), None, -1, -1, 0)

        patterns = [material.pattern for material in materials]
        pattern_ids = upload_patterns(patterns)
        upload_materials(materials, pattern_ids)
        upload_arena(nodes)
        samples = upload_lights(self.lights)
        set_background(self.settings.background)

        self._nodes = nodes
        self._dirty = False
        _active_world = self
        logger.info(
            "Committed world: %d nodes, %d materials, %d lights (%d samples)",
            len(nodes),
            len(materials),
            len(self.lights),
            samples,
        )

    def _ensure_committed(self) -> None:
        if self._dirty or _active_world is not self:
            self.commit()

    @property
    def node_count(self) -> int:
        self._ensure_committed()
        return len(self._nodes)

    def object_at(self, node: int) -> Object:
        """Scene object stored at an arena index."""
        self._ensure_committed()
        return self._nodes[node].source

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _use_acceleration(self, use_acceleration: bool | None) -> bool:
        if use_acceleration is None:
            return self.settings.use_acceleration
        return use_acceleration

    def intersect(self, ray: Ray3D, use_acceleration: bool | None = None) -> Intersections:
        """All intersections of a ray with the world, sorted by t."""
        self._ensure_committed()
        sources = [node.source for node in self._nodes]
        return collect_intersections(ray, sources, self._use_acceleration(use_acceleration))

    def colour_at(
        self,
        ray: Ray3D,
        remaining_depth: int | None = None,
        use_acceleration: bool | None = None,
    ) -> Colour:
        """Colour seen along a ray.

        Args:
            ray: The world-space ray.
            remaining_depth: Recursion depth; defaults to ``settings.max_depth``.
            use_acceleration: Override ``settings.use_acceleration``.

        Returns:
            Linear RGB colour, unclamped.
        """
        self._ensure_committed()
        depth = self.settings.max_depth if remaining_depth is None else remaining_depth
        colours = trace_rays(
            [ray.origin.to_tuple()],
            [ray.direction.to_tuple()],
            depth,
            self.settings.shadow_bias,
            self._use_acceleration(use_acceleration),
        )
        r, g, b = colours[0]
        return (float(r), float(g), float(b))

    def is_shadowed(
        self,
        point: Point3D | tuple[float, float, float],
        light_position: Point3D | tuple[float, float, float],
        use_acceleration: bool | None = None,
    ) -> bool:
        """Whether a shadow-casting surface lies strictly between a point and a light."""
        self._ensure_committed()
        return probes.is_shadowed(
            as_point(point), as_point(light_position), int(self._use_acceleration(use_acceleration))
        )

    def normal_at(
        self,
        obj: Object,
        point: Point3D | tuple[float, float, float],
        u: float = 0.0,
        v: float = 0.0,
    ) -> Vector3D:
        """Unit world-space normal of a primitive at a world point."""
        return probes.normal_at(self._node_of(obj), as_point(point), u, v)

    def raw_colour_at(self, obj: Object, point: Point3D | tuple[float, float, float]) -> Colour:
        """Unshaded pattern colour of a primitive at a world point."""
        return probes.raw_colour_at(self._node_of(obj), as_point(point))

    def _node_of(self, obj: Object) -> int:
        self._ensure_committed()
        for index, node in enumerate(self._nodes):
            if node.source is obj:
                return index
        raise ValueError(f"{obj!r} is not part of this world")

    def __repr__(self) -> str:
        return f"World(objects={len(self.objects)}, lights={len(self.lights)})"


def clear_world() -> None:
    """Empty every committed table and forget the active world."""
    global _active_world
    clear_arena()
    clear_materials()
    clear_patterns()
    clear_lights()
    _active_world = None
