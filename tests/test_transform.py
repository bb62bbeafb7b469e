"""Unit tests for affine transforms.

Tests cover:
- Translation, scaling, rotation and shearing factories
- Composition order and inversion
- View transforms
- Taichi point/vector/normal helpers
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestTransformFactories:
    """Tests for the basic transform constructors."""

    def test_translation_moves_points_not_vectors(self):
        """Test translation affects points but leaves vectors alone."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D, Vector3D

        t = Transform.translation(5, -3, 2)
        assert (t @ Point3D(-3, 4, 5)).isclose(Point3D(2, 1, 7))
        assert (t @ Vector3D(-3, 4, 5)).isclose(Vector3D(-3, 4, 5))

    def test_inverse_translation(self):
        """Test the inverse of a translation moves the other way."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D

        inv = Transform.translation(5, -3, 2).inverse()
        assert (inv @ Point3D(-3, 4, 5)).isclose(Point3D(-8, 7, 3))

    def test_scaling(self):
        """Test scaling points and vectors, and reflection by negative scale."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D, Vector3D

        s = Transform.scaling(2, 3, 4)
        assert (s @ Point3D(-4, 6, 8)).isclose(Point3D(-8, 18, 32))
        assert (s @ Vector3D(-4, 6, 8)).isclose(Vector3D(-8, 18, 32))
        assert (s.inverse() @ Vector3D(-4, 6, 8)).isclose(Vector3D(-2, 2, 2))
        assert (Transform.scaling(-1, 1, 1) @ Point3D(2, 3, 4)).isclose(Point3D(-2, 3, 4))

    def test_rotations(self):
        """Test quarter turns around each axis."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D

        k = math.sqrt(2) / 2
        assert (Transform.rotation_x(math.pi / 4) @ Point3D(0, 1, 0)).isclose(Point3D(0, k, k))
        assert (Transform.rotation_x(math.pi / 2) @ Point3D(0, 1, 0)).isclose(Point3D(0, 0, 1))
        assert (Transform.rotation_y(math.pi / 4) @ Point3D(0, 0, 1)).isclose(Point3D(k, 0, k))
        assert (Transform.rotation_y(math.pi / 2) @ Point3D(0, 0, 1)).isclose(Point3D(1, 0, 0))
        assert (Transform.rotation_z(math.pi / 4) @ Point3D(0, 1, 0)).isclose(Point3D(-k, k, 0))
        assert (Transform.rotation_z(math.pi / 2) @ Point3D(0, 1, 0)).isclose(Point3D(-1, 0, 0))

    def test_inverse_rotation_turns_backwards(self):
        """Test the inverse of an x rotation rotates the opposite way."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D

        k = math.sqrt(2) / 2
        inv = Transform.rotation_x(math.pi / 4).inverse()
        assert (inv @ Point3D(0, 1, 0)).isclose(Point3D(0, k, -k))

    @pytest.mark.parametrize(
        "factors, expected",
        [
            ((1, 0, 0, 0, 0, 0), (5, 3, 4)),
            ((0, 1, 0, 0, 0, 0), (6, 3, 4)),
            ((0, 0, 1, 0, 0, 0), (2, 5, 4)),
            ((0, 0, 0, 1, 0, 0), (2, 7, 4)),
            ((0, 0, 0, 0, 1, 0), (2, 3, 6)),
            ((0, 0, 0, 0, 0, 1), (2, 3, 7)),
        ],
    )
    def test_shearing(self, factors, expected):
        """Test each shearing factor moves one coordinate by another."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D

        result = Transform.shearing(*factors) @ Point3D(2, 3, 4)
        assert result.isclose(Point3D(*expected))


class TestTransformAlgebra:
    """Tests for composition, inversion and equality."""

    def test_chained_transforms_apply_in_reverse_order(self):
        """Test C @ B @ A applies A first."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D

        a = Transform.rotation_x(math.pi / 2)
        b = Transform.scaling(5, 5, 5)
        c = Transform.translation(10, 5, 7)
        p = Point3D(1, 0, 1)

        assert ((c @ b @ a) @ p).isclose(Point3D(15, 0, 7))
        assert (a.then(b).then(c) @ p).isclose(Point3D(15, 0, 7))

    def test_product_times_inverse_is_identity(self):
        """Test (A @ B) @ inverse(B) == A."""
        from src.whitted.core.transform import Transform

        a = Transform.shearing(1, 0.5, 0, 2, 0, 0.25) @ Transform.translation(1, 2, 3)
        b = Transform.rotation_y(0.7) @ Transform.scaling(2, 3, 4)
        assert (a @ b) @ b.inverse() == a
        assert b.inverse().inverse() == b

    def test_singular_matrix_cannot_be_inverted(self):
        """Test inverting a degenerate scale raises SingularMatrix."""
        from src.whitted.core.errors import SingularMatrix
        from src.whitted.core.transform import Transform

        t = Transform.scaling(1, 0, 1)
        assert not t.is_invertible()
        with pytest.raises(SingularMatrix):
            t.inverse()

    def test_linearly_dependent_columns_are_singular(self):
        """Test a matrix with repeated columns but no zero column is singular."""
        from src.whitted.core.transform import Transform

        t = Transform([[1, 1, 0, 0], [2, 2, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]])
        assert not t.is_invertible()

    @pytest.mark.parametrize("s", [1e-5, 1e-7])
    def test_tiny_uniform_scale_is_invertible(self, s):
        """Test very small but well-conditioned scales still invert."""
        from src.whitted.core.transform import Transform

        t = Transform.scaling(s, s, s)
        assert t.is_invertible()
        assert t.inverse().isclose(Transform.scaling(1 / s, 1 / s, 1 / s), epsilon=1e-3)

    def test_matrix_is_read_only(self):
        """Test the wrapped matrix cannot be mutated in place."""
        from src.whitted.core.transform import Transform

        t = Transform.identity()
        with pytest.raises(ValueError):
            t.matrix[0, 0] = 2.0

    def test_rejects_non_4x4(self):
        """Test constructing from the wrong shape fails."""
        from src.whitted.core.transform import Transform

        with pytest.raises(ValueError):
            Transform(np.identity(3))

    def test_apply_normal_uses_inverse_transpose(self):
        """Test normals stay perpendicular under non-uniform scaling."""
        from src.whitted.core.transform import Transform
        from src.whitted.core.vectors import Point3D, Vector3D

        t = Transform.scaling(1, 0.5, 1) @ Transform.rotation_z(math.pi / 5)
        k = math.sqrt(2) / 2
        local = t.inverse() @ Point3D(0, k, -k)
        normal = t.apply_normal(Vector3D(local.x, local.y, local.z))
        assert normal.isclose(Vector3D(0, 0.97014, -0.24254))


class TestViewTransform:
    """Tests for the camera view transform."""

    def test_default_orientation_is_identity(self):
        """Test looking down -z from the origin gives the identity."""
        from src.whitted.core.transform import Transform

        view = Transform.view((0, 0, 0), (0, 0, -1), (0, 1, 0))
        assert view == Transform.identity()

    def test_looking_in_positive_z_mirrors(self):
        """Test looking down +z flips x and z."""
        from src.whitted.core.transform import Transform

        view = Transform.view((0, 0, 0), (0, 0, 1), (0, 1, 0))
        assert view == Transform.scaling(-1, 1, -1)

    def test_view_moves_the_world(self):
        """Test the view transform translates the world, not the eye."""
        from src.whitted.core.transform import Transform

        view = Transform.view((0, 0, 8), (0, 0, 0), (0, 1, 0))
        assert view == Transform.translation(0, 0, -8)

    def test_arbitrary_view(self):
        """Test an arbitrary eye, target and up vector."""
        from src.whitted.core.transform import Transform

        view = Transform.view((1, 3, 2), (4, -2, 8), (1, 1, 0))
        expected = Transform(
            [
                [-0.50709, 0.50709, 0.67612, -2.36643],
                [0.76772, 0.60609, 0.12122, -2.82843],
                [-0.35857, 0.59761, -0.71714, 0.0],
                [0.0, 0.0, 0.0, 1.0],
            ]
        )
        assert view == expected

    def test_parallel_up_vector_raises(self):
        """Test an up vector along the view direction is rejected."""
        from src.whitted.core.transform import Transform

        with pytest.raises(ValueError):
            Transform.view((0, 0, 0), (0, 1, 0), (0, 1, 0))


class TestTransformKernels:
    """Tests for the Taichi transform helpers."""

    def test_point_vector_and_normal_helpers(self):
        """Test the kernel helpers agree with the Python transforms."""
        from src.whitted.core.transform import (
            Transform,
            transform_normal,
            transform_point,
            transform_vector,
            vec3,
        )

        t = Transform.translation(1, 2, 3) @ Transform.scaling(2, 2, 2)
        matrix = ti.Matrix.field(4, 4, dtype=ti.f32, shape=())
        inverse = ti.Matrix.field(4, 4, dtype=ti.f32, shape=())
        results = ti.Vector.field(3, dtype=ti.f32, shape=3)
        matrix[None] = t.to_numpy()
        inverse[None] = t.inverse().to_numpy()

        @ti.kernel
        def test_kernel():
            results[0] = transform_point(matrix[None], vec3(1.0, 1.0, 1.0))
            results[1] = transform_vector(matrix[None], vec3(1.0, 1.0, 1.0))
            results[2] = transform_normal(inverse[None], vec3(0.0, 1.0, 0.0))

        test_kernel()
        p = results[0]
        v = results[1]
        n = results[2]
        assert abs(p[0] - 3.0) < 1e-6 and abs(p[1] - 4.0) < 1e-6 and abs(p[2] - 5.0) < 1e-6
        assert abs(v[0] - 2.0) < 1e-6 and abs(v[1] - 2.0) < 1e-6 and abs(v[2] - 2.0) < 1e-6
        # Uniform scale by 2: inverse-transpose halves the normal
        assert abs(n[0]) < 1e-6 and abs(n[1] - 0.5) < 1e-6 and abs(n[2]) < 1e-6
