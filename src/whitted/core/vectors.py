"""Type-safe points and vectors for scene construction.

Points and vectors are both three floats, but they behave differently under
affine transforms: a point carries an implicit homogeneous coordinate w=1 and
is moved by translation, while a vector carries w=0 and is not. Keeping them
as distinct types makes illegal combinations (adding two points, translating
a direction) fail loudly instead of silently producing wrong geometry.

These classes live on the Python side only. Inside Taichi kernels both are
plain ``vec3`` values and the distinction is carried by which transform
helper is applied (see ``transform.py``).

Example:
    >>> from src.whitted.core.vectors import Point3D, Vector3D
    >>> p = Point3D(1.0, 2.0, 3.0)
    >>> v = Vector3D(0.0, 1.0, 0.0)
    >>> (p + v) - v == p
    True
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Tolerance used for all approximate comparisons in the geometry kernel
EPSILON = 1e-4


def approx_equal(a: float, b: float, epsilon: float = EPSILON) -> bool:
    """Compare two floats within a fixed absolute tolerance."""
    if a == b:
        return True
    return abs(a - b) < epsilon


@dataclass(frozen=True)
class Vector3D:
    """A direction or displacement (homogeneous w = 0).

    Attributes:
        x: X component.
        y: Y component.
        z: Z component.
    """

    x: float
    y: float
    z: float

    @property
    def w(self) -> float:
        return 0.0

    def __add__(self, other: Vector3D) -> Vector3D:
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Vector3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector3D) -> Vector3D:
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vector3D:
        return Vector3D(-self.x, -self.y, -self.z)

    def __mul__(self, scalar: float) -> Vector3D:
        return Vector3D(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector3D:
        return Vector3D(self.x / scalar, self.y / scalar, self.z / scalar)

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def dot(self, other: Vector3D) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3D) -> Vector3D:
        return Vector3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def magnitude(self) -> float:
        return math.sqrt(self.dot(self))

    def normalize(self) -> Vector3D:
        """Return a unit vector in the same direction.

        Raises:
            ValueError: If the vector has zero length.
        """
        length = self.magnitude()
        if length == 0.0:
            raise ValueError("Cannot normalize a zero-length vector")
        return self / length

    def reflect(self, normal: Vector3D) -> Vector3D:
        """Reflect this vector about a unit normal."""
        return self - normal * (2.0 * self.dot(normal))

    def isclose(self, other: Vector3D, epsilon: float = EPSILON) -> bool:
        return (
            approx_equal(self.x, other.x, epsilon)
            and approx_equal(self.y, other.y, epsilon)
            and approx_equal(self.z, other.z, epsilon)
        )

    def to_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Point3D:
    """A position in space (homogeneous w = 1).

    Attributes:
        x: X coordinate.
        y: Y coordinate.
        z: Z coordinate.
    """

    x: float
    y: float
    z: float

    @property
    def w(self) -> float:
        return 1.0

    def __add__(self, other: Vector3D) -> Point3D:
        if not isinstance(other, Vector3D):
            return NotImplemented
        return Point3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other):
        if isinstance(other, Point3D):
            return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)
        if isinstance(other, Vector3D):
            return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)
        return NotImplemented

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def isclose(self, other: Point3D, epsilon: float = EPSILON) -> bool:
        return (
            approx_equal(self.x, other.x, epsilon)
            and approx_equal(self.y, other.y, epsilon)
            and approx_equal(self.z, other.z, epsilon)
        )

    def to_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


ORIGIN = Point3D(0.0, 0.0, 0.0)


def as_point(value: Point3D | tuple[float, float, float]) -> Point3D:
    """Coerce a tuple into a Point3D, passing points through unchanged."""
    if isinstance(value, Point3D):
        return value
    x, y, z = value
    return Point3D(float(x), float(y), float(z))


def as_vector(value: Vector3D | tuple[float, float, float]) -> Vector3D:
    """Coerce a tuple into a Vector3D, passing vectors through unchanged."""
    if isinstance(value, Vector3D):
        return value
    x, y, z = value
    return Vector3D(float(x), float(y), float(z))
