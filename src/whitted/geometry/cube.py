"""Axis-aligned cube primitive spanning [-1, 1] on every local axis.

Intersection uses the slab method: the ray is clipped against each pair of
parallel faces and the three resulting intervals are intersected. The ray
hits the cube only when the largest entry distance does not exceed the
smallest exit distance.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import BoundingBox
from src.whitted.geometry.shapes import (
    PARALLEL_EPSILON,
    LocalHits,
    Shape,
    ShapeKind,
    append_hit,
    no_hits,
)

vec3 = tm.vec3

# Stand-in for infinity in slab intervals of parallel rays
SLAB_INFINITY = 1e30


@dataclass(frozen=True)
class Cube(Shape):
    """A cube from (-1, -1, -1) to (1, 1, 1)."""

    kind = ShapeKind.CUBE

    def bounding_box(self) -> BoundingBox:
        return BoundingBox(Point3D(-1.0, -1.0, -1.0), Point3D(1.0, 1.0, 1.0))


@ti.func
def _check_axis(origin: ti.f32, direction: ti.f32):
    """Entry and exit distances of a ray against the slab [-1, 1] on one axis.

    Returns:
        Tuple of (t_min, t_max) with t_min <= t_max when the slab is reachable,
        or an empty interval (t_min > t_max) for a parallel ray outside it.
    """
    t_min = -SLAB_INFINITY
    t_max = SLAB_INFINITY
    if ti.abs(direction) >= PARALLEL_EPSILON:
        t_min = (-1.0 - origin) / direction
        t_max = (1.0 - origin) / direction
        if t_min > t_max:
            temp = t_min
            t_min = t_max
            t_max = temp
    elif origin < -1.0 or origin > 1.0:
        t_min = SLAB_INFINITY
        t_max = -SLAB_INFINITY
    return t_min, t_max


@ti.func
def intersect_cube(ray_origin: vec3, ray_direction: vec3) -> LocalHits:
    """Intersect a local-space ray with the unit cube.

    Returns:
        LocalHits with 0 or 2 distances (entry, exit).
    """
    x_min, x_max = _check_axis(ray_origin.x, ray_direction.x)
    y_min, y_max = _check_axis(ray_origin.y, ray_direction.y)
    z_min, z_max = _check_axis(ray_origin.z, ray_direction.z)

    t_min = ti.max(x_min, ti.max(y_min, z_min))
    t_max = ti.min(x_max, ti.min(y_max, z_max))

    hits = no_hits()
    if t_min <= t_max:
        hits = append_hit(hits, t_min)
        hits = append_hit(hits, t_max)
    return hits


@ti.func
def normal_cube(local_point: vec3) -> vec3:
    """Face normal chosen by the component with the largest magnitude."""
    ax = ti.abs(local_point.x)
    ay = ti.abs(local_point.y)
    az = ti.abs(local_point.z)
    normal = vec3(0.0, 0.0, local_point.z)
    if ax >= ay and ax >= az:
        normal = vec3(local_point.x, 0.0, 0.0)
    elif ay >= az:
        normal = vec3(0.0, local_point.y, 0.0)
    return normal
