"""Unit sphere primitive with robust ray-sphere intersection.

The sphere is centred at the origin of its local space with radius 1; size
and placement come from the owning object's transform. Intersection uses the
robust quadratic formula from Ray Tracing Gems to avoid catastrophic
cancellation when b^2 is nearly equal to 4ac.

A ray that grazes the sphere reports the tangent point twice (a double root),
and a ray starting inside reports one negative and one positive distance.
Both roots are always returned; callers decide which are visible.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.geometry.sphere import Sphere, intersect_sphere
    >>> Sphere().bounding_box().maximum
    Point3D(x=1.0, y=1.0, z=1.0)
    >>> # Use intersect_sphere within a Taichi kernel
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import BoundingBox
from src.whitted.geometry.shapes import LocalHits, Shape, ShapeKind, append_hit, no_hits

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@dataclass(frozen=True)
class Sphere(Shape):
    """A unit sphere centred at the local origin."""

    kind = ShapeKind.SPHERE

    def bounding_box(self) -> BoundingBox:
        return BoundingBox(Point3D(-1.0, -1.0, -1.0), Point3D(1.0, 1.0, 1.0))


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve quadratic equation using robust formula from Ray Tracing Gems.

    Solves a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Fall back to standard formula for edge cases
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def intersect_sphere(ray_origin: vec3, ray_direction: vec3) -> LocalHits:
    """Intersect a local-space ray with the unit sphere.

    Expanding |origin + t * direction|^2 = 1 gives a*t^2 + 2*h*t + c = 0 with:
        a = dot(direction, direction)
        h = dot(direction, origin)  (half of traditional b)
        c = dot(origin, origin) - 1

    Args:
        ray_origin: Ray origin in sphere space.
        ray_direction: Ray direction in sphere space (need not be normalized).

    Returns:
        LocalHits with 0 or 2 distances (t0 <= t1; equal for a tangent ray).
    """
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, ray_origin)
    c = tm.dot(ray_origin, ray_origin) - 1.0

    discriminant = h * h - a * c

    hits = no_hits()
    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)
        hits = append_hit(hits, t0)
        hits = append_hit(hits, t1)
    return hits


@ti.func
def normal_sphere(local_point: vec3) -> vec3:
    """Outward normal of the unit sphere: the point itself."""
    return local_point
