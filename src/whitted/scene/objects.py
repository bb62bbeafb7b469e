"""Scene objects: shapes placed in the world with a transform and material.

An ``Object`` wraps one shape (see ``geometry``) together with its transform
and material. The inverse transform is computed once at construction, so a
singular placement fails immediately with ``SingularMatrix``.

A ``Group`` is a shape whose geometry is a tuple of child objects. A ``Csg``
shape combines exactly two operands with a union, intersection or
difference. Transforms of both compose with their children's (parent
first), and a child whose material is ``None`` inherits the nearest
enclosing material. Both are immutable once built, which lets every object
cache its bounding box.

Example:
    >>> from src.whitted.core.transform import Transform
    >>> from src.whitted.geometry.sphere import Sphere
    >>> from src.whitted.scene.objects import Group, Object
    >>> ball = Object(Sphere(), Transform.translation(5, 0, 0))
    >>> group = Object(Group([ball]), Transform.scaling(2, 2, 2))
    >>> group.bounding_box().maximum
    Point3D(x=12.0, y=2.0, z=2.0)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum

from src.whitted.core.transform import Transform
from src.whitted.core.vectors import Point3D
from src.whitted.geometry.bounds import BoundingBox
from src.whitted.geometry.shapes import PackedShape, Shape, ShapeKind
from src.whitted.materials.material import Material


@dataclass(eq=False)
class Object:
    """A shape placed in the scene.

    Attributes:
        shape: Geometry in local space.
        transform: Object-to-parent transform.
        material: Surface material, or None to inherit from the parent group.

    Raises:
        SingularMatrix: If the transform cannot be inverted.
    """

    shape: Shape
    transform: Transform = field(default_factory=Transform.identity)
    material: Material | None = None

    def __post_init__(self) -> None:
        self._inverse = self.transform.inverse()
        self._bounds: BoundingBox | None = None

    @property
    def inverse(self) -> Transform:
        return self._inverse

    @property
    def is_group(self) -> bool:
        return isinstance(self.shape, Group)

    @property
    def is_composite(self) -> bool:
        """Whether the shape is made of child objects (a group or a CSG)."""
        return isinstance(self.shape, (Group, Csg))

    def bounding_box(self) -> BoundingBox:
        """Box enclosing the object in its parent's space (cached)."""
        if self._bounds is None:
            self._bounds = self.shape.bounding_box().transformed(self.transform)
        return self._bounds

    def __repr__(self) -> str:
        return f"Object({type(self.shape).__name__}, material={self.material is not None})"


@dataclass(frozen=True, eq=False)
class Group(Shape):
    """A shape made of child objects.

    Attributes:
        children: The child objects, in traversal order.
    """

    kind = ShapeKind.GROUP

    children: tuple[Object, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))

    def __len__(self) -> int:
        return len(self.children)

    def bounding_box(self) -> BoundingBox:
        """Union of the children's boxes.

        An empty group has a degenerate box at the origin; it contains no
        geometry, so the box only matters for culling and can never hide a
        hit.
        """
        if not self.children:
            return BoundingBox(Point3D(0.0, 0.0, 0.0), Point3D(0.0, 0.0, 0.0))
        box = self.children[0].bounding_box()
        for child in self.children[1:]:
            box = box.union(child.bounding_box())
        return box

    def packed(self) -> PackedShape:
        return PackedShape(kind=self.kind)

    def partitioned(self, threshold: int) -> Group:
        """Split this group into a hierarchy of smaller groups.

        Children that fit entirely inside one half of the group box (split
        along its largest axis) move into a new sub-group for that half;
        children straddling the split stay where they are. Unbounded children
        stay too, and the split box covers only the bounded ones. Sub-groups
        are partitioned recursively, and child groups are partitioned too.

        Args:
            threshold: Minimum number of children before a group is split.
                Values below 2 disable splitting.

        Returns:
            A new group; the original is left unchanged.
        """
        children = [_partition_object(child, threshold) for child in self.children]
        if threshold < 2 or len(children) < threshold:
            return Group(children)

        # Unbounded children (planes) never move and do not widen the split box
        bounded = [child for child in children if child.bounding_box().is_finite()]
        if len(bounded) < 2:
            return Group(children)
        box = bounded[0].bounding_box()
        for child in bounded[1:]:
            box = box.union(child.bounding_box())

        left_box, right_box = box.split()
        left: list[Object] = []
        right: list[Object] = []
        remaining: list[Object] = []
        for child in children:
            child_box = child.bounding_box()
            if not child_box.is_finite():
                remaining.append(child)
            elif left_box.contains_box(child_box):
                left.append(child)
            elif right_box.contains_box(child_box):
                right.append(child)
            else:
                remaining.append(child)

        # No progress when everything lands on one side or straddles the split
        if len(left) == len(bounded) or len(right) == len(bounded) or not (left or right):
            return Group(children)

        for half in (left, right):
            if len(half) == 1:
                remaining.append(half[0])
            elif half:
                remaining.append(Object(Group(half).partitioned(threshold)))
        return Group(remaining)


class CsgOperation(IntEnum):
    """How a CSG shape combines its two operands."""

    UNION = 0
    INTERSECTION = 1
    DIFFERENCE = 2


@dataclass(frozen=True, eq=False)
class Csg(Shape):
    """Constructive solid geometry over two operands.

    A surface of one operand is kept where the operation says the other
    operand's solid allows it: a union keeps surfaces outside the other
    operand, an intersection keeps surfaces inside it, and a difference
    keeps the left surfaces outside the right operand plus the right
    surfaces inside the left one.

    Attributes:
        operation: The boolean operation.
        left: First operand.
        right: Second operand.
    """

    kind = ShapeKind.CSG

    operation: CsgOperation
    left: Object
    right: Object

    @property
    def children(self) -> tuple[Object, Object]:
        return (self.left, self.right)

    def bounding_box(self) -> BoundingBox:
        """Box of the combined solid.

        A difference can never extend past its left operand; the other
        operations use the union of both operand boxes.
        """
        if self.operation == CsgOperation.DIFFERENCE:
            return self.left.bounding_box()
        return self.left.bounding_box().union(self.right.bounding_box())

    def packed(self) -> PackedShape:
        return PackedShape(kind=self.kind, params=(float(self.operation), 0.0, 0.0, 0.0))


def _partition_object(obj: Object, threshold: int) -> Object:
    if isinstance(obj.shape, Csg):
        left = _partition_object(obj.shape.left, threshold)
        right = _partition_object(obj.shape.right, threshold)
        if left is obj.shape.left and right is obj.shape.right:
            return obj
        return Object(Csg(obj.shape.operation, left, right), obj.transform, obj.material)
    if not obj.is_group:
        return obj
    return Object(obj.shape.partitioned(threshold), obj.transform, obj.material)


def group(children: Iterable[Object], transform: Transform | None = None, material: Material | None = None) -> Object:
    """Convenience constructor for a group object."""
    return Object(Group(tuple(children)), transform or Transform.identity(), material)


def csg_union(
    left: Object, right: Object, transform: Transform | None = None, material: Material | None = None
) -> Object:
    """The solid covered by either operand."""
    return Object(Csg(CsgOperation.UNION, left, right), transform or Transform.identity(), material)


def csg_intersection(
    left: Object, right: Object, transform: Transform | None = None, material: Material | None = None
) -> Object:
    """The solid covered by both operands."""
    return Object(Csg(CsgOperation.INTERSECTION, left, right), transform or Transform.identity(), material)


def csg_difference(
    left: Object, right: Object, transform: Transform | None = None, material: Material | None = None
) -> Object:
    """The left solid with the right one carved out of it."""
    return Object(Csg(CsgOperation.DIFFERENCE, left, right), transform or Transform.identity(), material)
