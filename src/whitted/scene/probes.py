"""Single-point kernels backing the World query methods.

These evaluate one shadow test, normal or pattern colour against the
committed tables and return the result to Python. They are used by
``World.is_shadowed``, ``World.normal_at`` and ``World.raw_colour_at``.
"""

import taichi as ti
import taichi.math as tm

from src.whitted.core.shading import surface_colour
from src.whitted.core.vectors import Point3D, Vector3D
from src.whitted.scene.intersection import intersect_scene_any, node_normal_at

vec3 = tm.vec3


@ti.kernel
def _shadow_probe(
    px: ti.f32,
    py: ti.f32,
    pz: ti.f32,
    lx: ti.f32,
    ly: ti.f32,
    lz: ti.f32,
    use_acceleration: ti.i32,
) -> ti.i32:
    point = vec3(px, py, pz)
    to_light = vec3(lx, ly, lz) - point
    distance = tm.length(to_light)
    blocked = 0
    if distance > 0.0:
        blocked = intersect_scene_any(point, to_light / distance, distance, use_acceleration)
    return blocked


@ti.kernel
def _normal_probe(node: ti.i32, px: ti.f32, py: ti.f32, pz: ti.f32, u: ti.f32, v: ti.f32) -> vec3:
    return node_normal_at(node, vec3(px, py, pz), u, v)


@ti.kernel
def _colour_probe(node: ti.i32, px: ti.f32, py: ti.f32, pz: ti.f32) -> vec3:
    return surface_colour(node, vec3(px, py, pz), 0.0, 0.0)


def is_shadowed(point: Point3D, light_position: Point3D, use_acceleration: int) -> bool:
    """Test the open segment between a point and a light for occluders."""
    return bool(
        _shadow_probe(
            point.x,
            point.y,
            point.z,
            light_position.x,
            light_position.y,
            light_position.z,
            use_acceleration,
        )
    )


def normal_at(node: int, point: Point3D, u: float, v: float) -> Vector3D:
    """Unit world-space normal of an arena node."""
    n = _normal_probe(node, point.x, point.y, point.z, u, v)
    return Vector3D(float(n[0]), float(n[1]), float(n[2]))


def raw_colour_at(node: int, point: Point3D) -> tuple[float, float, float]:
    """Unshaded pattern colour of an arena node."""
    c = _colour_probe(node, point.x, point.y, point.z)
    return (float(c[0]), float(c[1]), float(c[2]))
