"""Affine 4x4 transforms for placing objects, patterns and cameras.

A Transform wraps a NumPy float64 matrix built from translation, scaling,
rotation and shearing factories. Transforms compose with ``@`` in the usual
matrix order, so ``translation(...) @ scaling(...)`` scales first and then
translates. ``then`` offers the reverse, fluent reading order.

Every object in a scene stores the *inverse* of its transform; rays are
carried into object space with it, and normals are carried back out with its
transpose. Inversion of a singular matrix raises ``SingularMatrix`` so that
the offending object fails at construction instead of filling the image with
NaNs.

The Taichi helpers at the bottom apply stored 4x4 inverse matrices inside
kernels, treating vec3 values as points (w=1), vectors (w=0) or normals
(inverse-transpose, w forced to 0).

Example:
    >>> import math
    >>> from src.whitted.core.transform import Transform
    >>> from src.whitted.core.vectors import Point3D
    >>> t = Transform.rotation_x(math.pi / 2).then(Transform.scaling(5, 5, 5))
    >>> (t @ Point3D(1, 0, 1)).isclose(Point3D(5, -5, 0))
    True
"""

import math

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.whitted.core.errors import SingularMatrix
from src.whitted.core.vectors import EPSILON, Point3D, Vector3D, as_point, as_vector

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
mat4 = tm.mat4

# Matrices whose determinant, relative to the product of their column
# lengths, falls below this are treated as singular
SINGULAR_EPSILON = 1e-12


class Transform:
    """An invertible-by-construction-check 4x4 affine matrix.

    Attributes:
        matrix: The 4x4 float64 NumPy matrix (read-only).
    """

    __slots__ = ("_matrix",)

    def __init__(self, matrix: npt.ArrayLike | None = None) -> None:
        if matrix is None:
            m = np.identity(4, dtype=np.float64)
        else:
            m = np.array(matrix, dtype=np.float64)
            if m.shape != (4, 4):
                raise ValueError(f"Transform matrix must be 4x4, got shape {m.shape}")
        m.setflags(write=False)
        self._matrix = m

    @property
    def matrix(self) -> npt.NDArray[np.float64]:
        return self._matrix

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def translation(cls, x: float, y: float, z: float) -> "Transform":
        m = np.identity(4)
        m[0, 3] = x
        m[1, 3] = y
        m[2, 3] = z
        return cls(m)

    @classmethod
    def scaling(cls, x: float, y: float, z: float) -> "Transform":
        return cls(np.diag([x, y, z, 1.0]))

    @classmethod
    def rotation_x(cls, radians: float) -> "Transform":
        c, s = math.cos(radians), math.sin(radians)
        return cls([[1, 0, 0, 0], [0, c, -s, 0], [0, s, c, 0], [0, 0, 0, 1]])

    @classmethod
    def rotation_y(cls, radians: float) -> "Transform":
        c, s = math.cos(radians), math.sin(radians)
        return cls([[c, 0, s, 0], [0, 1, 0, 0], [-s, 0, c, 0], [0, 0, 0, 1]])

    @classmethod
    def rotation_z(cls, radians: float) -> "Transform":
        c, s = math.cos(radians), math.sin(radians)
        return cls([[c, -s, 0, 0], [s, c, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]])

    @classmethod
    def shearing(
        cls, xy: float, xz: float, yx: float, yz: float, zx: float, zy: float
    ) -> "Transform":
        """Shear each coordinate in proportion to the other two.

        Args:
            xy: Moves x in proportion to y.
            xz: Moves x in proportion to z.
            yx: Moves y in proportion to x.
            yz: Moves y in proportion to z.
            zx: Moves z in proportion to x.
            zy: Moves z in proportion to y.
        """
        return cls([[1, xy, xz, 0], [yx, 1, yz, 0], [zx, zy, 1, 0], [0, 0, 0, 1]])

    @classmethod
    def view(
        cls,
        from_point: Point3D | tuple[float, float, float],
        to_point: Point3D | tuple[float, float, float],
        up: Vector3D | tuple[float, float, float],
    ) -> "Transform":
        """Build a world-to-camera transform looking from one point at another.

        Args:
            from_point: Eye position.
            to_point: Point the eye is looking at.
            up: Approximate up direction; need not be orthogonal.

        Returns:
            The view transform (orientation followed by translation).

        Raises:
            ValueError: If from and to coincide or up is parallel to the view.
        """
        eye = as_point(from_point)
        forward = (as_point(to_point) - eye).normalize()
        left = forward.cross(as_vector(up).normalize())
        if left.magnitude() < EPSILON:
            raise ValueError("View up vector is parallel to the view direction")
        true_up = left.cross(forward)
        orientation = cls(
            [
                [left.x, left.y, left.z, 0.0],
                [true_up.x, true_up.y, true_up.z, 0.0],
                [-forward.x, -forward.y, -forward.z, 0.0],
                [0.0, 0.0, 0.0, 1.0],
            ]
        )
        return orientation @ cls.translation(-eye.x, -eye.y, -eye.z)

    # -------------------------------------------------------------------------
    # Algebra
    # -------------------------------------------------------------------------

    def __matmul__(self, other):
        if isinstance(other, Transform):
            return Transform(self._matrix @ other._matrix)
        if isinstance(other, Point3D):
            x, y, z, w = self._matrix @ np.array([other.x, other.y, other.z, 1.0])
            return Point3D(float(x), float(y), float(z))
        if isinstance(other, Vector3D):
            x, y, z, _ = self._matrix @ np.array([other.x, other.y, other.z, 0.0])
            return Vector3D(float(x), float(y), float(z))
        return NotImplemented

    def then(self, other: "Transform") -> "Transform":
        """Apply this transform first, followed by ``other``."""
        return other @ self

    def transpose(self) -> "Transform":
        return Transform(self._matrix.T)

    def determinant(self) -> float:
        return float(np.linalg.det(self._matrix))

    def is_invertible(self) -> bool:
        columns = np.linalg.norm(self._matrix, axis=0)
        if np.any(columns == 0.0):
            return False
        return abs(self.determinant()) / float(np.prod(columns)) >= SINGULAR_EPSILON

    def inverse(self) -> "Transform":
        """Invert the matrix.

        Returns:
            The inverse transform.

        Raises:
            SingularMatrix: If the matrix cannot be inverted.
        """
        if not self.is_invertible():
            raise SingularMatrix(f"Transform is not invertible:\n{self._matrix}")
        try:
            inverse = np.linalg.inv(self._matrix)
        except np.linalg.LinAlgError as exc:
            raise SingularMatrix(str(exc)) from exc
        if not np.all(np.isfinite(inverse)):
            raise SingularMatrix(f"Transform inverse is not finite:\n{self._matrix}")
        return Transform(inverse)

    def apply_normal(self, normal: Vector3D) -> Vector3D:
        """Carry an object-space normal into the space this transform maps to.

        Uses the inverse-transpose so that normals stay perpendicular to
        surfaces under non-uniform scaling, then renormalizes.
        """
        m = np.linalg.inv(self._matrix).T
        x, y, z, _ = m @ np.array([normal.x, normal.y, normal.z, 0.0])
        return Vector3D(float(x), float(y), float(z)).normalize()

    def isclose(self, other: "Transform", epsilon: float = EPSILON) -> bool:
        return bool(np.allclose(self._matrix, other._matrix, rtol=0.0, atol=epsilon))

    def to_numpy(self, dtype=np.float32) -> npt.NDArray:
        return self._matrix.astype(dtype)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transform):
            return NotImplemented
        return self.isclose(other)

    __hash__ = None

    def __repr__(self) -> str:
        rows = ", ".join(str(list(row)) for row in self._matrix.round(5))
        return f"Transform([{rows}])"


# =============================================================================
# Taichi Transform Helpers
# =============================================================================


@ti.func
def transform_point(m: mat4, p: vec3) -> vec3:
    """Apply a 4x4 matrix to a point (homogeneous w = 1)."""
    result = vec3(0.0, 0.0, 0.0)
    for i in ti.static(range(3)):
        result[i] = m[i, 0] * p[0] + m[i, 1] * p[1] + m[i, 2] * p[2] + m[i, 3]
    return result


@ti.func
def transform_vector(m: mat4, v: vec3) -> vec3:
    """Apply a 4x4 matrix to a vector (homogeneous w = 0)."""
    result = vec3(0.0, 0.0, 0.0)
    for i in ti.static(range(3)):
        result[i] = m[i, 0] * v[0] + m[i, 1] * v[1] + m[i, 2] * v[2]
    return result


@ti.func
def transform_normal(inverse: mat4, n: vec3) -> vec3:
    """Carry a local normal to world space using the inverse-transpose.

    Args:
        inverse: The world-to-object matrix of the surface.
        n: Normal in object space.

    Returns:
        The (unnormalized) world-space normal with w dropped.
    """
    result = vec3(0.0, 0.0, 0.0)
    for i in ti.static(range(3)):
        result[i] = inverse[0, i] * n[0] + inverse[1, i] * n[1] + inverse[2, i] * n[2]
    return result
