"""Double-napped cone primitive around the local y axis.

The lateral surface is x^2 + z^2 = y^2 (radius equals |y|), optionally
truncated to (minimum, maximum) and capped with discs whose radius matches
the cone at each end.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import INFINITY, BoundingBox
from src.whitted.geometry.cylinder import validate_extent
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


@dataclass(frozen=True)
class Cone(Shape):
    """A double cone with apex at the origin.

    Attributes:
        minimum: Lower y bound (exclusive for the lateral surface).
        maximum: Upper y bound (exclusive for the lateral surface).
        closed: Whether the ends are capped.

    Raises:
        ConstructionError: If the extent is invalid.
    """

    kind = ShapeKind.CONE

    minimum: float = -INFINITY
    maximum: float = INFINITY
    closed: bool = False

    def __post_init__(self) -> None:
        validate_extent("Cone", self.minimum, self.maximum, self.closed)

    def bounding_box(self) -> BoundingBox:
        radius = max(abs(self.minimum), abs(self.maximum))
        return BoundingBox(
            Point3D(-radius, self.minimum, -radius),
            Point3D(radius, self.maximum, radius),
        )

    def packed(self) -> PackedShape:
        return PackedShape(
            kind=self.kind,
            params=(self.minimum, self.maximum, 1.0 if self.closed else 0.0, 0.0),
        )


@ti.func
def _within_cap(ray_origin: vec3, ray_direction: vec3, t: ti.f32, cap_y: ti.f32) -> ti.i32:
    x = ray_origin.x + t * ray_direction.x
    z = ray_origin.z + t * ray_direction.z
    return x * x + z * z <= cap_y * cap_y


@ti.func
def intersect_cone(
    ray_origin: vec3,
    ray_direction: vec3,
    minimum: ti.f32,
    maximum: ti.f32,
    closed: ti.i32,
) -> LocalHits:
    """Intersect a local-space ray with a (possibly truncated, capped) cone.

    When the quadratic term vanishes the ray is parallel to one of the
    nappes and crosses the other exactly once at -c / 2b.

    Returns:
        LocalHits with up to four distances.
    """
    o = ray_origin
    d = ray_direction
    a = d.x * d.x - d.y * d.y + d.z * d.z
    b = 2.0 * (o.x * d.x - o.y * d.y + o.z * d.z)
    c = o.x * o.x - o.y * o.y + o.z * o.z

    hits = no_hits()
    if ti.abs(a) < PARALLEL_EPSILON:
        if ti.abs(b) >= PARALLEL_EPSILON:
            t = -c / (2.0 * b)
            y = o.y + t * d.y
            if minimum < y and y < maximum:
                hits = append_hit(hits, t)
    else:
        discriminant = b * b - 4.0 * a * c
        if discriminant >= 0.0:
            sqrt_d = ti.sqrt(discriminant)
            t0 = (-b - sqrt_d) / (2.0 * a)
            t1 = (-b + sqrt_d) / (2.0 * a)
            if t0 > t1:
                temp = t0
                t0 = t1
                t1 = temp
            y0 = o.y + t0 * d.y
            if minimum < y0 and y0 < maximum:
                hits = append_hit(hits, t0)
            y1 = o.y + t1 * d.y
            if minimum < y1 and y1 < maximum:
                hits = append_hit(hits, t1)

    if closed == 1 and ti.abs(d.y) >= PARALLEL_EPSILON:
        t_low = (minimum - o.y) / d.y
        if _within_cap(o, d, t_low, minimum):
            hits = append_hit(hits, t_low)
        t_high = (maximum - o.y) / d.y
        if _within_cap(o, d, t_high, maximum):
            hits = append_hit(hits, t_high)

    return hits


@ti.func
def normal_cone(local_point: vec3, minimum: ti.f32, maximum: ti.f32) -> vec3:
    """Cap normal on the end discs, sloped lateral normal elsewhere."""
    p = local_point
    dist = p.x * p.x + p.z * p.z
    normal = vec3(0.0, 0.0, 0.0)
    if dist < maximum * maximum and p.y >= maximum - EPSILON:
        normal = vec3(0.0, 1.0, 0.0)
    elif dist < minimum * minimum and p.y <= minimum + EPSILON:
        normal = vec3(0.0, -1.0, 0.0)
    else:
        y = ti.sqrt(dist)
        if p.y > 0.0:
            y = -y
        normal = vec3(p.x, y, p.z)
    return normal
