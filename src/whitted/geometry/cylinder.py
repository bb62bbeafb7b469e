"""Unit-radius cylinder primitive around the local y axis.

The lateral surface is x^2 + z^2 = 1, optionally truncated to the open
interval (minimum, maximum) on y. A closed (capped) cylinder additionally
reports hits on the two end-cap discs at y = minimum and y = maximum.

Intersections are reported lateral hits first, then the lower cap, then the
upper cap; distances are not sorted.

Example:
    >>> from src.whitted.geometry.cylinder import Cylinder
    >>> Cylinder(minimum=-5.0, maximum=3.0).bounding_box().minimum
    Point3D(x=-1.0, y=-5.0, z=-1.0)
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.errors import ConstructionError
from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import INFINITY, BoundingBox
from src.whitted.geometry.shapes import (
    EPSILON,
    PARALLEL_EPSILON,
    LocalHits,
    PackedShape,
    Shape,
    ShapeKind,
    append_hit,
    no_hits,
)

vec3 = tm.vec3


def validate_extent(name: str, minimum: float, maximum: float, closed: bool) -> None:
    """Reject truncation extents that cannot describe a solid.

    Raises:
        ConstructionError: If minimum > maximum, either bound is NaN, or a
            capped shape has an infinite extent.
    """
    if math.isnan(minimum) or math.isnan(maximum):
        raise ConstructionError(f"{name} extent must not be NaN")
    if minimum > maximum:
        raise ConstructionError(
            f"{name} minimum ({minimum}) must not exceed maximum ({maximum})"
        )
    if closed and not (math.isfinite(minimum) and math.isfinite(maximum)):
        raise ConstructionError(f"A closed {name.lower()} needs a finite extent")


@dataclass(frozen=True)
class Cylinder(Shape):
    """A unit-radius cylinder along y.

    Attributes:
        minimum: Lower y bound (exclusive for the lateral surface).
        maximum: Upper y bound (exclusive for the lateral surface).
        closed: Whether the ends are capped.

    Raises:
        ConstructionError: If the extent is invalid.
    """

    kind = ShapeKind.CYLINDER

    minimum: float = -INFINITY
    maximum: float = INFINITY
    closed: bool = False

    def __post_init__(self) -> None:
        validate_extent("Cylinder", self.minimum, self.maximum, self.closed)

    def bounding_box(self) -> BoundingBox:
        return BoundingBox(
            Point3D(-1.0, self.minimum, -1.0),
            Point3D(1.0, self.maximum, 1.0),
        )

    def packed(self) -> PackedShape:
        return PackedShape(
            kind=self.kind,
            params=(self.minimum, self.maximum, 1.0 if self.closed else 0.0, 0.0),
        )


@ti.func
def _within_radius(ray_origin: vec3, ray_direction: vec3, t: ti.f32, radius_sq: ti.f32) -> ti.i32:
    """Whether the ray point at t lies within a disc of the given squared radius."""
    x = ray_origin.x + t * ray_direction.x
    z = ray_origin.z + t * ray_direction.z
    return x * x + z * z <= radius_sq


@ti.func
def intersect_cylinder(
    ray_origin: vec3,
    ray_direction: vec3,
    minimum: ti.f32,
    maximum: ti.f32,
    closed: ti.i32,
) -> LocalHits:
    """Intersect a local-space ray with a (possibly truncated, capped) cylinder.

    Args:
        ray_origin: Ray origin in cylinder space.
        ray_direction: Ray direction in cylinder space.
        minimum: Lower y bound.
        maximum: Upper y bound.
        closed: 1 if the end caps are solid.

    Returns:
        LocalHits with up to four distances.
    """
    hits = no_hits()

    a = ray_direction.x * ray_direction.x + ray_direction.z * ray_direction.z
    # Rays parallel to the axis can only hit the caps
    if ti.abs(a) >= PARALLEL_EPSILON:
        b = 2.0 * (ray_origin.x * ray_direction.x + ray_origin.z * ray_direction.z)
        c = ray_origin.x * ray_origin.x + ray_origin.z * ray_origin.z - 1.0
        discriminant = b * b - 4.0 * a * c
        if discriminant >= 0.0:
            sqrt_d = ti.sqrt(discriminant)
            t0 = (-b - sqrt_d) / (2.0 * a)
            t1 = (-b + sqrt_d) / (2.0 * a)
            if t0 > t1:
                temp = t0
                t0 = t1
                t1 = temp
            y0 = ray_origin.y + t0 * ray_direction.y
            if minimum < y0 and y0 < maximum:
                hits = append_hit(hits, t0)
            y1 = ray_origin.y + t1 * ray_direction.y
            if minimum < y1 and y1 < maximum:
                hits = append_hit(hits, t1)

    if closed == 1 and ti.abs(ray_direction.y) >= PARALLEL_EPSILON:
        t_low = (minimum - ray_origin.y) / ray_direction.y
        if _within_radius(ray_origin, ray_direction, t_low, 1.0):
            hits = append_hit(hits, t_low)
        t_high = (maximum - ray_origin.y) / ray_direction.y
        if _within_radius(ray_origin, ray_direction, t_high, 1.0):
            hits = append_hit(hits, t_high)

    return hits


@ti.func
def normal_cylinder(local_point: vec3, minimum: ti.f32, maximum: ti.f32) -> vec3:
    """Cap normal (+/-y) on the end discs, radial (x, 0, z) elsewhere."""
    dist = local_point.x * local_point.x + local_point.z * local_point.z
    normal = vec3(local_point.x, 0.0, local_point.z)
    if dist < 1.0 and local_point.y >= maximum - EPSILON:
        normal = vec3(0.0, 1.0, 0.0)
    elif dist < 1.0 and local_point.y <= minimum + EPSILON:
        normal = vec3(0.0, -1.0, 0.0)
    return normal
