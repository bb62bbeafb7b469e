"""Infinite plane primitive: the local x-z plane with normal +y."""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import INFINITY, BoundingBox
from src.whitted.geometry.shapes import (
    PARALLEL_EPSILON,
    LocalHits,
    Shape,
    ShapeKind,
    append_hit,
    no_hits,
)

vec3 = tm.vec3


@dataclass(frozen=True)
class Plane(Shape):
    """The x-z plane (y = 0) extending infinitely."""

    kind = ShapeKind.PLANE

    def bounding_box(self) -> BoundingBox:
        return BoundingBox(
            Point3D(-INFINITY, 0.0, -INFINITY),
            Point3D(INFINITY, 0.0, INFINITY),
        )


@ti.func
def intersect_plane(ray_origin: vec3, ray_direction: vec3) -> LocalHits:
    """Intersect a local-space ray with the y = 0 plane.

    Rays parallel to the plane (including rays lying inside it) never hit.

    Returns:
        LocalHits with at most one distance.
    """
    hits = no_hits()
    if ti.abs(ray_direction.y) >= PARALLEL_EPSILON:
        hits = append_hit(hits, -ray_origin.y / ray_direction.y)
    return hits


@ti.func
def normal_plane(local_point: vec3) -> vec3:
    """The plane normal is +y everywhere."""
    return vec3(0.0, 1.0, 0.0)
