"""Flat and smooth triangle primitives.

Both triangles intersect with the Moller-Trumbore algorithm, which solves
directly for the ray distance and the barycentric coordinates (u, v) of the
hit relative to edges e1 = p2 - p1 and e2 = p3 - p1:

    hit = p1 + u * e1 + v * e2,   u >= 0, v >= 0, u + v <= 1

A flat triangle reports the face normal fixed at construction. A smooth
triangle blends its three vertex normals with the barycentric weights of
the hit, giving the interpolated shading used for tessellated meshes:

    normal = n2 * u + n3 * v + n1 * (1 - u - v)

Degenerate triangles (collinear or coincident vertices) have no face normal
and are rejected with ``ConstructionError``.

Example:
    >>> from src.whitted.geometry.triangle import Triangle
    >>> from src.whitted.core.vectors import Point3D
    >>> tri = Triangle(Point3D(0, 1, 0), Point3D(-1, 0, 0), Point3D(1, 0, 0))
    >>> tri.normal
    Vector3D(x=0.0, y=0.0, z=-1.0)
"""

from dataclasses import dataclass, field

import taichi as ti
import taichi.math as tm

from src.whitted.core.errors import ConstructionError
from src.whitted.core.vectors import Point3D, Vector3D, as_point, as_vector
from src.whitted.geometry.bounds import BoundingBox
from src.whitted.geometry.shapes import (
    PARALLEL_EPSILON,
    LocalHits,
    PackedShape,
    Shape,
    ShapeKind,
    no_hits,
)

vec3 = tm.vec3
vec4 = tm.vec4

# Twice the area below which a triangle is considered degenerate
DEGENERATE_AREA = 1e-10


@dataclass(frozen=True)
class Triangle(Shape):
    """A flat-shaded triangle.

    Attributes:
        p1: First vertex.
        p2: Second vertex.
        p3: Third vertex.
        e1: Edge p2 - p1 (derived).
        e2: Edge p3 - p1 (derived).
        normal: Unit face normal, normalize(e2 x e1) (derived).

    Raises:
        ConstructionError: If the vertices do not span a triangle.
    """

    kind = ShapeKind.TRIANGLE

    p1: Point3D
    p2: Point3D
    p3: Point3D
    e1: Vector3D = field(init=False, repr=False)
    e2: Vector3D = field(init=False, repr=False)
    normal: Vector3D = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "p1", as_point(self.p1))
        object.__setattr__(self, "p2", as_point(self.p2))
        object.__setattr__(self, "p3", as_point(self.p3))
        e1 = self.p2 - self.p1
        e2 = self.p3 - self.p1
        face = e2.cross(e1)
        if face.magnitude() < DEGENERATE_AREA:
            raise ConstructionError(
                f"Triangle vertices {self.p1}, {self.p2}, {self.p3} are collinear"
            )
        object.__setattr__(self, "e1", e1)
        object.__setattr__(self, "e2", e2)
        object.__setattr__(self, "normal", face.normalize())

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_points((self.p1, self.p2, self.p3))

    def packed(self) -> PackedShape:
        return PackedShape(
            kind=self.kind,
            vertices=(self.p1, self.p2, self.p3),
            normals=(self.normal, self.normal, self.normal),
        )


@dataclass(frozen=True)
class SmoothTriangle(Triangle):
    """A triangle whose shading normal is interpolated from vertex normals.

    Attributes:
        n1: Normal at p1.
        n2: Normal at p2.
        n3: Normal at p3.

    Raises:
        ConstructionError: If the vertices do not span a triangle, or a vertex
            normal has zero length.
    """

    kind = ShapeKind.SMOOTH_TRIANGLE

    n1: Vector3D
    n2: Vector3D
    n3: Vector3D

    def __post_init__(self) -> None:
        super().__post_init__()
        for name in ("n1", "n2", "n3"):
            value = as_vector(getattr(self, name))
            if value.magnitude() == 0.0:
                raise ConstructionError(f"Smooth triangle normal {name} has zero length")
            object.__setattr__(self, name, value)

    def packed(self) -> PackedShape:
        return PackedShape(
            kind=self.kind,
            vertices=(self.p1, self.p2, self.p3),
            normals=(self.n1, self.n2, self.n3),
        )


@ti.func
def intersect_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    p1: vec3,
    e1: vec3,
    e2: vec3,
) -> LocalHits:
    """Moller-Trumbore ray-triangle intersection.

    Args:
        ray_origin: Ray origin in triangle space.
        ray_direction: Ray direction in triangle space.
        p1: First vertex.
        e1: Edge p2 - p1.
        e2: Edge p3 - p1.

    Returns:
        LocalHits with at most one distance and the barycentric (u, v).
    """
    hits = no_hits()

    dir_cross_e2 = tm.cross(ray_direction, e2)
    det = tm.dot(e1, dir_cross_e2)
    # Parallel rays never hit
    if ti.abs(det) >= PARALLEL_EPSILON:
        f = 1.0 / det
        p1_to_origin = ray_origin - p1
        u = f * tm.dot(p1_to_origin, dir_cross_e2)
        if u >= 0.0 and u <= 1.0:
            origin_cross_e1 = tm.cross(p1_to_origin, e1)
            v = f * tm.dot(ray_direction, origin_cross_e1)
            if v >= 0.0 and u + v <= 1.0:
                t = f * tm.dot(e2, origin_cross_e1)
                hits = LocalHits(count=1, ts=vec4(t, 0.0, 0.0, 0.0), u=u, v=v)

    return hits


@ti.func
def normal_smooth_triangle(u: ti.f32, v: ti.f32, n1: vec3, n2: vec3, n3: vec3) -> vec3:
    """Barycentric blend of the vertex normals at (u, v).

    Flat triangles store their face normal in all three slots, so the blend
    returns the face normal unchanged.
    """
    return n2 * u + n3 * v + n1 * (1.0 - u - v)
