"""Ray data structures and vector utilities.

This module provides two views of a ray:

- ``Ray3D``: the validated Python-side ray used by the scene API. It rejects
  zero-length or non-finite directions with ``InvalidRay`` before any
  intersection testing happens.
- ``Ray``: the Taichi dataclass used inside kernels, together with the
  vector helpers (reflect, refract) used by the shading and tracing code.

Example:
    >>> from src.whitted.core.ray import Ray3D
    >>> from src.whitted.core.vectors import Point3D, Vector3D
    >>> ray = Ray3D(Point3D(2, 3, 4), Vector3D(1, 0, 0))
    >>> ray.position(2.5)
    Point3D(x=4.5, y=3.0, z=4.0)
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from src.whitted.core.errors import InvalidRay
from src.whitted.core.transform import Transform
from src.whitted.core.vectors import Point3D, Vector3D, as_point, as_vector

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@dataclass(frozen=True)
class Ray3D:
    """A validated ray with an origin point and direction vector.

    The direction is not normalized; transformed rays keep the scale of
    their transform so that ``t`` values remain comparable across spaces.

    Attributes:
        origin: Starting point of the ray.
        direction: Direction vector of the ray (non-zero, finite).

    Raises:
        InvalidRay: If the direction is zero-length or not finite.
    """

    origin: Point3D
    direction: Vector3D

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", as_point(self.origin))
        object.__setattr__(self, "direction", as_vector(self.direction))
        components = (*self.origin, *self.direction)
        if not all(math.isfinite(c) for c in components):
            raise InvalidRay(f"Ray has non-finite components: {self}")
        if self.direction.magnitude() == 0.0:
            raise InvalidRay("Ray direction must have non-zero length")

    def position(self, t: float) -> Point3D:
        """Return the point ``origin + direction * t``."""
        return self.origin + self.direction * t

    def transform(self, transform: Transform) -> "Ray3D":
        """Return this ray carried through ``transform``."""
        return Ray3D(transform @ self.origin, transform @ self.direction)


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            normalized; intersection routines work with any non-zero length.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction inside a kernel."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32):
    """Refract an incident vector through a surface using Snell's law.

    The normal must face against the incident direction (toward the viewer),
    which is the convention produced by the tracer's inside/outside flip.

    Args:
        incident: The incoming unit direction (pointing toward the surface).
        normal: The unit surface normal on the incident side.
        eta: Ratio of refractive indices n_incident / n_transmitted.

    Returns:
        Tuple of (direction, ok). ``ok`` is 0 on total internal reflection,
        in which case direction is the zero vector.
    """
    cos_i = -tm.dot(incident, normal)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    ok = 0
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
        ok = 1
    return result, ok
