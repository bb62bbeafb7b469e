"""Unit tests for Phong materials and the material table.

Tests cover:
- Default coefficients and validation
- Upload into Taichi fields
- The Phong lighting function
"""

import math

import pytest
import taichi as ti


class TestMaterial:
    """Tests for the Material dataclass."""

    def test_defaults(self):
        """Test the default material coefficients."""
        from src.whitted.materials.material import Material
        from src.whitted.materials.patterns import Solid

        m = Material()
        assert isinstance(m.pattern, Solid)
        assert m.pattern.colour == (1.0, 1.0, 1.0)
        assert (m.ambient, m.diffuse, m.specular, m.shininess) == (0.1, 0.9, 0.9, 200.0)
        assert (m.reflective, m.transparency, m.refractive_index) == (0.0, 0.0, 1.0)
        assert m.casts_shadow is True

    @pytest.mark.parametrize("name", ["ambient", "diffuse", "specular", "reflective", "transparency"])
    def test_negative_coefficient_raises(self, name):
        """Test negative coefficients are rejected."""
        from src.whitted.materials.material import Material

        with pytest.raises(ValueError):
            Material(**{name: -0.1})

    def test_invalid_refractive_index(self):
        """Test a non-positive or NaN refractive index is rejected."""
        from src.whitted.materials.material import Material

        with pytest.raises(ValueError):
            Material(refractive_index=0.0)
        with pytest.raises(ValueError):
            Material(refractive_index=math.nan)

    def test_upload(self):
        """Test materials are written into the Structure of Arrays fields."""
        from src.whitted.materials import material as mat

        glass = mat.Material(transparency=0.9, refractive_index=mat.GLASS, casts_shadow=False)
        mat.upload_materials([mat.Material(), glass], [0, 3])
        assert mat.get_material_count() == 2
        assert mat.material_pattern[1] == 3
        assert abs(mat.material_transparency[1] - 0.9) < 1e-6
        assert abs(mat.material_refractive_index[1] - 1.52) < 1e-6
        assert mat.material_casts_shadow[0] == 1
        assert mat.material_casts_shadow[1] == 0

    def test_upload_length_mismatch(self):
        """Test every material needs a pattern id."""
        from src.whitted.materials.material import Material, upload_materials

        with pytest.raises(ValueError):
            upload_materials([Material()], [])

    def test_too_many_materials(self):
        """Test exceeding the material table raises."""
        from src.whitted.materials.material import MAX_MATERIALS, Material, upload_materials

        materials = [Material()] * (MAX_MATERIALS + 1)
        with pytest.raises(RuntimeError):
            upload_materials(materials, [0] * len(materials))


class TestPhong:
    """Tests for the Phong reflection model with a white default material."""

    @pytest.fixture(scope="class")
    def lighting(self):
        from src.whitted.core.shading import phong, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def run(
            ex: ti.f32,
            ey: ti.f32,
            ez: ti.f32,
            lx: ti.f32,
            ly: ti.f32,
            lz: ti.f32,
            shadowed: ti.i32,
        ):
            result[None] = phong(
                vec3(1.0, 1.0, 1.0),
                0.1,
                0.9,
                0.9,
                200.0,
                vec3(lx, ly, lz),
                vec3(1.0, 1.0, 1.0),
                vec3(0.0, 0.0, 0.0),
                vec3(ex, ey, ez),
                vec3(0.0, 0.0, -1.0),
                shadowed,
            )

        def lighting(eye, light, shadowed=False):
            run(*eye, *light, int(shadowed))
            c = result[None]
            return float(c[0])

        return lighting

    def test_eye_between_light_and_surface(self, lighting):
        """Test full ambient, diffuse and specular."""
        assert abs(lighting((0, 0, -1), (0, 0, -10)) - 1.9) < 1e-4

    def test_eye_offset_45_degrees(self, lighting):
        """Test the highlight vanishes when the eye moves off the reflection."""
        k = math.sqrt(2) / 2
        assert abs(lighting((0, k, -k), (0, 0, -10)) - 1.0) < 1e-4

    def test_light_offset_45_degrees(self, lighting):
        """Test diffuse falls off with the light angle."""
        assert abs(lighting((0, 0, -1), (0, 10, -10)) - 0.7364) < 1e-4

    def test_eye_in_reflection_path(self, lighting):
        """Test the highlight peaks when the eye sits on the reflection."""
        k = math.sqrt(2) / 2
        assert abs(lighting((0, -k, -k), (0, 10, -10)) - 1.6364) < 1e-4

    def test_light_behind_surface(self, lighting):
        """Test only ambient remains when the light is behind."""
        assert abs(lighting((0, 0, -1), (0, 0, 10)) - 0.1) < 1e-4

    def test_in_shadow(self, lighting):
        """Test only ambient remains in shadow."""
        assert abs(lighting((0, 0, -1), (0, 0, -10), shadowed=True) - 0.1) < 1e-4
