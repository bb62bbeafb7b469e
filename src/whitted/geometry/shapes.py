"""Shared shape protocol: kinds, local hit lists and packed arena rows.

Every primitive exposes the same three capabilities in its own local space:

- ``local_intersect``: a Taichi function returning a ``LocalHits`` record with
  up to four parametric distances (cylinders and cones can produce two
  lateral hits plus two cap hits).
- ``local_normal_at``: a Taichi function returning the unnormalized local
  normal at a point.
- ``bounding_box``: a Python method returning the local axis-aligned box.

On the Python side each shape is a small validated dataclass; ``packed()``
flattens it into the fixed-width row stored in the world arena (see
``scene/intersection.py``), where ``ShapeKind`` selects the algorithm.
"""

from dataclasses import dataclass
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D, Vector3D
from src.whitted.geometry.bounds import BoundingBox

vec3 = tm.vec3
vec4 = tm.vec4

# General geometric tolerance (cap membership, normal selection)
EPSILON = 1e-4

# Tolerance for "ray is parallel to this surface" tests
PARALLEL_EPSILON = 1e-7

# Maximum number of intersections a single primitive can report
MAX_LOCAL_HITS = 4


class ShapeKind(IntEnum):
    """Tag used to dispatch intersection and normal algorithms in kernels."""

    GROUP = 0
    SPHERE = 1
    PLANE = 2
    CUBE = 3
    CYLINDER = 4
    CONE = 5
    TRIANGLE = 6
    SMOOTH_TRIANGLE = 7
    CSG = 8


@dataclass
class PackedShape:
    """Fixed-width description of a shape for upload into the arena.

    Attributes:
        kind: Shape kind tag.
        params: Four scalar parameters (minimum, maximum, closed, unused);
            CSG nodes store their operation in the first slot.
        vertices: Three points (triangles only).
        normals: Three vertex normals (triangles only; flat triangles repeat
            the face normal).
    """

    kind: ShapeKind
    params: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    vertices: tuple[Point3D, Point3D, Point3D] | None = None
    normals: tuple[Vector3D, Vector3D, Vector3D] | None = None


@dataclass(frozen=True)
class Shape:
    """Base class for all primitive shapes."""

    kind = ShapeKind.GROUP

    def bounding_box(self) -> BoundingBox:
        raise NotImplementedError

    def packed(self) -> PackedShape:
        return PackedShape(kind=self.kind)


# =============================================================================
# Local Hit Lists
# =============================================================================


@ti.dataclass
class LocalHits:
    """Up to four local intersections of a ray with one primitive.

    Attributes:
        count: Number of valid entries in ``ts`` (0..4).
        ts: Parametric distances; only the first ``count`` are meaningful.
            Entries are in discovery order, not sorted.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).
    """

    count: ti.i32
    ts: vec4
    u: ti.f32
    v: ti.f32


@ti.func
def no_hits() -> LocalHits:
    """Create an empty hit list."""
    return LocalHits(count=0, ts=vec4(0.0, 0.0, 0.0, 0.0), u=0.0, v=0.0)


@ti.func
def append_hit(hits: LocalHits, t: ti.f32) -> LocalHits:
    """Return ``hits`` with ``t`` appended (ignored once four are stored)."""
    ts = hits.ts
    for s in ti.static(range(MAX_LOCAL_HITS)):
        if s == hits.count:
            ts[s] = t
    count = ti.min(hits.count + 1, MAX_LOCAL_HITS)
    return LocalHits(count=count, ts=ts, u=hits.u, v=hits.v)
