"""Axis-aligned bounding boxes for bounding-volume culling.

A ``BoundingBox`` is built on the Python side for every primitive (its local
box), carried through object transforms into world space, and unioned
bottom-up for groups. The resulting world boxes are padded and uploaded into
the arena so that kernels can reject whole subtrees with a single slab test
(``ray_box_overlap``) before running any exact intersection.

Culling must never change which surfaces a ray hits. The slab test therefore
treats only exactly-zero direction components as parallel, and boxes are
padded on upload to absorb float32 rounding of the transformed geometry.

Example:
    >>> from src.whitted.geometry.bounds import BoundingBox
    >>> from src.whitted.core.vectors import Point3D
    >>> a = BoundingBox(Point3D(-5, -2, 0), Point3D(7, 4, 4))
    >>> b = BoundingBox(Point3D(8, -7, -2), Point3D(14, 2, 8))
    >>> a.union(b).maximum
    Point3D(x=14.0, y=4.0, z=8.0)
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import taichi as ti
import taichi.math as tm

from src.whitted.core.vectors import Point3D

if TYPE_CHECKING:
    from src.whitted.core.transform import Transform

vec3 = tm.vec3

INFINITY = math.inf

# Absolute and relative padding applied to boxes uploaded for culling
BOX_PADDING = 1e-3
BOX_RELATIVE_PADDING = 1e-5

# Direction components below this magnitude are treated as exactly parallel;
# far below float32 precision for any hit within reach of the scene.
SLAB_PARALLEL_EPSILON = 1e-30


@dataclass(frozen=True)
class BoundingBox:
    """An axis-aligned box given by componentwise minimum and maximum corners.

    Attributes:
        minimum: Lower corner (may contain -inf for unbounded shapes).
        maximum: Upper corner (may contain +inf for unbounded shapes).

    Raises:
        ValueError: If ``minimum`` exceeds ``maximum`` on any axis.
    """

    minimum: Point3D
    maximum: Point3D

    def __post_init__(self) -> None:
        for lo, hi in zip(self.minimum, self.maximum):
            if math.isnan(lo) or math.isnan(hi) or lo > hi:
                raise ValueError(
                    f"Bounding box minimum {self.minimum} exceeds maximum {self.maximum}"
                )

    @classmethod
    def from_points(cls, points) -> "BoundingBox":
        """Return the smallest box containing all given points."""
        points = list(points)
        if not points:
            raise ValueError("Cannot bound an empty set of points")
        xs, ys, zs = zip(*((p.x, p.y, p.z) for p in points))
        return cls(Point3D(min(xs), min(ys), min(zs)), Point3D(max(xs), max(ys), max(zs)))

    @classmethod
    def unbounded(cls) -> "BoundingBox":
        return cls(
            Point3D(-INFINITY, -INFINITY, -INFINITY),
            Point3D(INFINITY, INFINITY, INFINITY),
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in (*self.minimum, *self.maximum))

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            Point3D(
                min(self.minimum.x, other.minimum.x),
                min(self.minimum.y, other.minimum.y),
                min(self.minimum.z, other.minimum.z),
            ),
            Point3D(
                max(self.maximum.x, other.maximum.x),
                max(self.maximum.y, other.maximum.y),
                max(self.maximum.z, other.maximum.z),
            ),
        )

    def contains_point(self, point: Point3D) -> bool:
        return all(
            lo <= c <= hi for lo, c, hi in zip(self.minimum, point, self.maximum)
        )

    def contains_box(self, other: "BoundingBox") -> bool:
        return self.contains_point(other.minimum) and self.contains_point(other.maximum)

    def largest_axis(self) -> int:
        extents = [hi - lo for lo, hi in zip(self.minimum, self.maximum)]
        return extents.index(max(extents))

    def split(self) -> "tuple[BoundingBox, BoundingBox]":
        """Halve the box along its largest axis."""
        axis = self.largest_axis()
        lo = list(self.minimum)
        hi = list(self.maximum)
        middle = lo[axis] + (hi[axis] - lo[axis]) / 2.0
        left_max = list(hi)
        left_max[axis] = middle
        right_min = list(lo)
        right_min[axis] = middle
        return (
            BoundingBox(self.minimum, Point3D(*left_max)),
            BoundingBox(Point3D(*right_min), self.maximum),
        )

    def transformed(self, transform: "Transform") -> "BoundingBox":
        """Return the box enclosing this box after ``transform``.

        Finite boxes transform their eight corners. Boxes with infinite
        extents use the per-axis interval form, which avoids the
        ``0 * inf`` NaNs a corner transform would produce.
        """
        m = transform.matrix
        if self.is_finite():
            corners = [
                transform @ Point3D(x, y, z)
                for x in (self.minimum.x, self.maximum.x)
                for y in (self.minimum.y, self.maximum.y)
                for z in (self.minimum.z, self.maximum.z)
            ]
            return BoundingBox.from_points(corners)

        lo = [float(m[i, 3]) for i in range(3)]
        hi = list(lo)
        for i in range(3):
            for j, (a_min, a_max) in enumerate(zip(self.minimum, self.maximum)):
                factor = float(m[i, j])
                if factor == 0.0:
                    continue
                a = factor * a_min
                b = factor * a_max
                lo[i] += min(a, b)
                hi[i] += max(a, b)
        return BoundingBox(Point3D(*lo), Point3D(*hi))

    def padded(self) -> "BoundingBox":
        """Grow the box slightly to absorb float32 rounding in kernels."""
        largest = max(abs(c) for c in (*self.minimum, *self.maximum))
        pad = BOX_PADDING + BOX_RELATIVE_PADDING * largest
        return BoundingBox(
            Point3D(self.minimum.x - pad, self.minimum.y - pad, self.minimum.z - pad),
            Point3D(self.maximum.x + pad, self.maximum.y + pad, self.maximum.z + pad),
        )


@ti.func
def ray_box_overlap(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test: does the ray overlap the box anywhere in [t_min, t_max]?

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (any non-zero length).
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        t_min: Start of the parametric interval of interest.
        t_max: End of the parametric interval of interest.

    Returns:
        1 if the ray segment overlaps the box, 0 otherwise.
    """
    t_near = t_min
    t_far = t_max
    overlap = 1

    for axis in ti.static(range(3)):
        if ti.abs(ray_direction[axis]) < SLAB_PARALLEL_EPSILON:
            # Parallel to this slab: inside it everywhere or nowhere
            if ray_origin[axis] < box_min[axis] or ray_origin[axis] > box_max[axis]:
                overlap = 0
        else:
            inv_d = 1.0 / ray_direction[axis]
            t0 = (box_min[axis] - ray_origin[axis]) * inv_d
            t1 = (box_max[axis] - ray_origin[axis]) * inv_d
            if t0 > t1:
                temp = t0
                t0 = t1
                t1 = temp
            t_near = ti.max(t_near, t0)
            t_far = ti.min(t_far, t1)

    if t_near > t_far:
        overlap = 0

    return overlap
