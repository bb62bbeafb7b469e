"""Unit tests for colour patterns and texture mappings.

Tests cover:
- Stripes, gradients, rings and 3D checkers
- Pattern transforms and validation
- Spherical, planar, cylindrical and cubic (u, v) mappings
- UV checkers and image textures (nearest and bilinear)
- Alignment checks, cube maps and capped-cylinder maps
"""

import math

import numpy as np
import pytest
import taichi as ti

WHITE = (1.0, 1.0, 1.0)
BLACK = (0.0, 0.0, 0.0)


def _close(actual, expected, tol=1e-4):
    return all(abs(a - e) < tol for a, e in zip(actual, expected))


@pytest.fixture(scope="module")
def colour_at():
    """Evaluate an uploaded pattern at a pattern-space point and uv."""
    from src.whitted.materials.patterns import pattern_colour_at, vec2, vec3

    result = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def run(pattern: ti.i32, px: ti.f32, py: ti.f32, pz: ti.f32, u: ti.f32, v: ti.f32):
        result[None] = pattern_colour_at(pattern, vec3(px, py, pz), vec2(u, v))

    def colour(pattern_id, point, uv=(0.0, 0.0)):
        run(pattern_id, *point, *uv)
        c = result[None]
        return (float(c[0]), float(c[1]), float(c[2]))

    return colour


@pytest.fixture(scope="module")
def uv_of():
    """Apply one of the UV mapping functions to a point."""
    from src.whitted.geometry.uv import (
        UVMapping,
        cubic_uv,
        cylindrical_uv,
        planar_uv,
        spherical_uv,
        vec2,
        vec3,
    )

    result = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def run(mapping: ti.i32, px: ti.f32, py: ti.f32, pz: ti.f32):
        p = vec3(px, py, pz)
        uv = vec2(0.0, 0.0)
        if mapping == int(UVMapping.SPHERICAL):
            uv = spherical_uv(p)
        elif mapping == int(UVMapping.PLANAR):
            uv = planar_uv(p)
        elif mapping == int(UVMapping.CYLINDRICAL):
            uv = cylindrical_uv(p)
        else:
            uv = cubic_uv(p)
        result[None] = uv

    def uv(mapping, point):
        run(mapping, *point)
        value = result[None]
        return (float(value[0]), float(value[1]))

    return uv


# Selector for cubic_uv in the uv_of fixture
CUBIC = -1


class TestSolidAndStripes:
    """Tests for solid colours and stripes."""

    def test_solid(self, colour_at):
        """Test a solid pattern is constant."""
        from src.whitted.materials.patterns import Solid, upload_patterns

        (solid,) = upload_patterns([Solid((0.2, 0.4, 0.6))])
        for point in [(0, 0, 0), (5.5, -3, 2), (-100, 0.1, 7)]:
            assert _close(colour_at(solid, point), (0.2, 0.4, 0.6))

    def test_stripes_constant_in_y_and_z(self, colour_at):
        """Test stripes only vary along x."""
        from src.whitted.materials.patterns import Striped, upload_patterns

        (stripes,) = upload_patterns([Striped(WHITE, BLACK)])
        for point in [(0, 0, 0), (0, 1, 0), (0, 2, 0), (0, 0, 1), (0, 0, 2)]:
            assert _close(colour_at(stripes, point), WHITE)

    @pytest.mark.parametrize(
        "x, expected",
        [(0.0, WHITE), (0.9, WHITE), (1.0, BLACK), (-0.1, BLACK), (-1.0, BLACK), (-1.1, WHITE)],
    )
    def test_stripes_alternate_in_x(self, colour_at, x, expected):
        """Test stripes alternate every unit, including negative x."""
        from src.whitted.materials.patterns import Striped, upload_patterns

        (stripes,) = upload_patterns([Striped(WHITE, BLACK)])
        assert _close(colour_at(stripes, (x, 0, 0)), expected)

    def test_nudge_just_below_integer(self, colour_at):
        """Test a coordinate a hair below 1 is treated as 1."""
        from src.whitted.materials.patterns import Striped, upload_patterns

        (stripes,) = upload_patterns([Striped(WHITE, BLACK)])
        assert _close(colour_at(stripes, (0.999999, 0, 0)), BLACK)


class TestOtherPatterns:
    """Tests for gradient, ring and checkers."""

    def test_gradient(self, colour_at):
        """Test a gradient interpolates linearly along x."""
        from src.whitted.materials.patterns import Gradient, upload_patterns

        (gradient,) = upload_patterns([Gradient(WHITE, BLACK)])
        assert _close(colour_at(gradient, (0, 0, 0)), WHITE)
        assert _close(colour_at(gradient, (0.25, 0, 0)), (0.75, 0.75, 0.75))
        assert _close(colour_at(gradient, (0.5, 0, 0)), (0.5, 0.5, 0.5))
        assert _close(colour_at(gradient, (0.75, 0, 0)), (0.25, 0.25, 0.25))

    def test_gradient_has_no_seam_below_integer(self, colour_at):
        """Test a gradient approaches its end colour just below a whole unit."""
        from src.whitted.materials.patterns import Gradient, upload_patterns

        (gradient,) = upload_patterns([Gradient(WHITE, BLACK)])
        assert _close(colour_at(gradient, (0.999, 0, 0)), (0.001, 0.001, 0.001))
        assert _close(colour_at(gradient, (1 - 5e-6, 0, 0)), BLACK)
        assert _close(colour_at(gradient, (1.0, 0, 0)), WHITE)

    def test_ring(self, colour_at):
        """Test rings extend in both x and z."""
        from src.whitted.materials.patterns import Ring, upload_patterns

        (ring,) = upload_patterns([Ring(WHITE, BLACK)])
        assert _close(colour_at(ring, (0, 0, 0)), WHITE)
        assert _close(colour_at(ring, (1, 0, 0)), BLACK)
        assert _close(colour_at(ring, (0, 0, 1)), BLACK)
        assert _close(colour_at(ring, (0.708, 0, 0.708)), BLACK)

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((0, 0, 0), WHITE),
            ((0.99, 0, 0), WHITE),
            ((1.01, 0, 0), BLACK),
            ((0, 0.99, 0), WHITE),
            ((0, 1.01, 0), BLACK),
            ((0, 0, 0.99), WHITE),
            ((0, 0, 1.01), BLACK),
            ((1.5, 1.5, 0), WHITE),
            ((-0.5, 0, 0), BLACK),
        ],
    )
    def test_checkers(self, colour_at, point, expected):
        """Test 3D checkers repeat in every dimension."""
        from src.whitted.materials.patterns import Checkers, upload_patterns

        (checkers,) = upload_patterns([Checkers(WHITE, BLACK)])
        assert _close(colour_at(checkers, point), expected)

    def test_pattern_transform_inverse(self):
        """Test the pattern inverse is computed at construction."""
        from src.whitted.core.transform import Transform
        from src.whitted.materials.patterns import Striped

        pattern = Striped(WHITE, BLACK, transform=Transform.scaling(2, 2, 2))
        assert pattern.inverse == Transform.scaling(0.5, 0.5, 0.5)

    def test_singular_pattern_transform_raises(self):
        """Test an uninvertible pattern transform fails at construction."""
        from src.whitted.core.errors import SingularMatrix
        from src.whitted.core.transform import Transform
        from src.whitted.materials.patterns import Striped

        with pytest.raises(SingularMatrix):
            Striped(WHITE, BLACK, transform=Transform.scaling(0, 1, 1))

    def test_pattern_space_point(self):
        """Test points are carried through the uploaded pattern inverse."""
        from src.whitted.core.transform import Transform
        from src.whitted.materials.patterns import Striped, pattern_space_point, upload_patterns, vec3

        (stripes,) = upload_patterns(
            [Striped(WHITE, BLACK, transform=Transform.translation(0.5, 0, 0))]
        )
        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = pattern_space_point(stripes, vec3(2.5, 1.0, 0.0))

        test_kernel()
        p = result[None]
        assert _close((p[0], p[1], p[2]), (2.0, 1.0, 0.0))

    def test_too_many_patterns(self):
        """Test exceeding the pattern table raises."""
        from src.whitted.materials.patterns import MAX_PATTERNS, Solid, upload_patterns

        with pytest.raises(RuntimeError):
            upload_patterns([Solid()] * (MAX_PATTERNS + 1))


class TestUVMappings:
    """Tests for point to (u, v) mappings."""

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((0, 0, -1), (0.0, 0.5)),
            ((1, 0, 0), (0.25, 0.5)),
            ((0, 0, 1), (0.5, 0.5)),
            ((-1, 0, 0), (0.75, 0.5)),
            ((0, 1, 0), (0.5, 1.0)),
            ((0, -1, 0), (0.5, 0.0)),
            ((math.sqrt(2) / 2, math.sqrt(2) / 2, 0), (0.25, 0.75)),
        ],
    )
    def test_spherical(self, uv_of, point, expected):
        """Test longitude and latitude on the unit sphere."""
        from src.whitted.geometry.uv import UVMapping

        assert _close(uv_of(int(UVMapping.SPHERICAL), point), expected)

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((0.25, 0, 0.5), (0.25, 0.5)),
            ((0.25, 0, -0.25), (0.25, 0.75)),
            ((0.25, 0.5, -0.25), (0.25, 0.75)),
            ((1.25, 0, 0.5), (0.25, 0.5)),
            ((0.25, 0, -1.75), (0.25, 0.25)),
            ((1, 0, -1), (0.0, 0.0)),
            ((0, 0, 0), (0.0, 0.0)),
        ],
    )
    def test_planar(self, uv_of, point, expected):
        """Test the plane tiles into unit squares."""
        from src.whitted.geometry.uv import UVMapping

        assert _close(uv_of(int(UVMapping.PLANAR), point), expected)

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((0, 0, -1), (0.0, 0.0)),
            ((0, 0.5, -1), (0.0, 0.5)),
            ((0, 1, -1), (0.0, 0.0)),
            ((0.70711, 0.5, -0.70711), (0.125, 0.5)),
            ((1, 0.5, 0), (0.25, 0.5)),
            ((0, -0.25, 1), (0.5, 0.75)),
        ],
    )
    def test_cylindrical(self, uv_of, point, expected):
        """Test wrapping around the y axis."""
        from src.whitted.geometry.uv import UVMapping

        assert _close(uv_of(int(UVMapping.CYLINDRICAL), point), expected)

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((-1, 0.5, -0.25), (0.375, 0.75)),
            ((1.1, -0.75, 0.8), (0.1, 0.125)),
            ((0.1, 0.6, 0.9), (0.55, 0.8)),
            ((-0.5, 1, -0.1), (0.25, 0.55)),
            ((0.5, -1, 0.1), (0.75, 0.55)),
            ((0.25, 0.5, -1), (0.375, 0.75)),
        ],
    )
    def test_cubic(self, uv_of, point, expected):
        """Test each cube face maps to its own square."""
        assert _close(uv_of(CUBIC, point), expected)


class TestUVPatterns:
    """Tests for checkers and images in texture space."""

    @pytest.mark.parametrize(
        "uv, expected",
        [
            ((0.0, 0.0), BLACK),
            ((0.5, 0.0), WHITE),
            ((0.0, 0.5), WHITE),
            ((0.5, 0.5), BLACK),
            ((1.0, 1.0), BLACK),
        ],
    )
    def test_uv_checkers(self, colour_at, uv, expected):
        """Test a 2x2 texture-space checkerboard."""
        from src.whitted.materials.patterns import UVCheckers, upload_patterns

        (checkers,) = upload_patterns([UVCheckers(BLACK, WHITE, width=2, height=2)])
        assert _close(colour_at(checkers, (0, 0, 0), uv), expected)

    def test_uv_checkers_invalid_size(self):
        """Test non-positive checker dimensions are rejected."""
        from src.whitted.materials.patterns import UVCheckers

        with pytest.raises(ValueError):
            UVCheckers(BLACK, WHITE, width=0, height=2)

    @pytest.fixture
    def quad_image(self):
        """A 2x2 image: red, green on top; blue, white below."""
        return np.array(
            [
                [[255, 0, 0], [0, 255, 0]],
                [[0, 0, 255], [255, 255, 255]],
            ],
            dtype=np.uint8,
        )

    @pytest.mark.parametrize(
        "uv, expected",
        [
            ((0.1, 0.9), (1.0, 0.0, 0.0)),
            ((0.9, 0.9), (0.0, 1.0, 0.0)),
            ((0.1, 0.1), (0.0, 0.0, 1.0)),
            ((0.9, 0.1), (1.0, 1.0, 1.0)),
        ],
    )
    def test_image_nearest(self, colour_at, quad_image, uv, expected):
        """Test nearest lookup with v = 1 at the top row."""
        from src.whitted.materials.patterns import UVImage, upload_patterns

        (image,) = upload_patterns([UVImage(image=quad_image)])
        assert _close(colour_at(image, (0, 0, 0), uv), expected)

    def test_image_bilinear(self, colour_at, quad_image):
        """Test bilinear lookup blends the four texels."""
        from src.whitted.materials.patterns import TextureFilter, UVImage, upload_patterns

        (image,) = upload_patterns([UVImage(image=quad_image, filter=TextureFilter.BILINEAR)])
        assert _close(colour_at(image, (0, 0, 0), (0.5, 0.5)), (0.5, 0.5, 0.5))
        assert _close(colour_at(image, (0, 0, 0), (0.0, 1.0)), (1.0, 0.0, 0.0))

    def test_image_converts_uint8(self, quad_image):
        """Test 8-bit images are stored as floats in [0, 1]."""
        from src.whitted.materials.patterns import UVImage

        pattern = UVImage(image=quad_image)
        assert pattern.image.dtype == np.float32
        assert pattern.width == 2 and pattern.height == 2
        assert pattern.image[1, 1, 0] == 1.0

    def test_image_rejects_bad_shape(self):
        """Test a non-RGB array is rejected."""
        from src.whitted.materials.patterns import UVImage

        with pytest.raises(ValueError):
            UVImage(image=np.zeros((4, 4), dtype=np.float32))

    def test_image_from_file(self, tmp_path, quad_image):
        """Test loading a texture through Pillow."""
        from PIL import Image as PILImage

        from src.whitted.materials.patterns import UVImage

        path = tmp_path / "texture.png"
        PILImage.fromarray(quad_image).save(path)
        pattern = UVImage.from_file(path)
        assert pattern.image.shape == (2, 2, 3)
        assert _close(pattern.image[0, 1], (0.0, 1.0, 0.0))

    def test_shared_image_uploaded_once(self, quad_image):
        """Test two patterns referencing one image share a texture."""
        from src.whitted.materials import patterns

        image = patterns.UVImage(image=quad_image)
        other = patterns.UVImage(image=image.image, filter=patterns.TextureFilter.BILINEAR)
        patterns.upload_patterns([image, other])
        assert patterns.num_textures[None] == 1
        assert patterns.get_pattern_count() == 2


class TestAlignmentCheck:
    """Tests for the corner-marked UV test card."""

    @pytest.mark.parametrize(
        "uv, expected",
        [
            ((0.5, 0.5), WHITE),
            ((0.1, 0.9), (1.0, 0.0, 0.0)),
            ((0.9, 0.9), (1.0, 1.0, 0.0)),
            ((0.1, 0.1), (0.0, 1.0, 0.0)),
            ((0.9, 0.1), (0.0, 1.0, 1.0)),
            ((0.5, 0.9), WHITE),
            ((0.1, 0.5), WHITE),
            ((1.1, 1.9), (1.0, 0.0, 0.0)),
        ],
    )
    def test_corners(self, colour_at, uv, expected):
        """Test each corner of the texture square gets its own colour."""
        from src.whitted.materials.patterns import AlignmentCheck, upload_patterns

        (pattern,) = upload_patterns([AlignmentCheck()])
        assert _close(colour_at(pattern, (0, 0, 0), uv), expected)


def _card(main):
    from src.whitted.materials.patterns import AlignmentCheck

    return AlignmentCheck(main=main)


class TestMultiFacePatterns:
    """Tests for cube and capped-cylinder maps."""

    FACE_COLOURS = [
        (1.0, 0.0, 0.0),
        (0.0, 1.0, 0.0),
        (0.0, 0.0, 1.0),
        (1.0, 1.0, 0.0),
        (1.0, 0.0, 1.0),
        (0.0, 1.0, 1.0),
    ]

    @pytest.mark.parametrize(
        "point, face",
        [
            ((0, 0, 1), 0),
            ((0, 0, -1), 1),
            ((-1, 0, 0), 2),
            ((1, 0, 0), 3),
            ((0, 1, 0), 4),
            ((0, -1, 0), 5),
        ],
    )
    def test_cube_map_faces(self, point, face):
        """Test the face pattern is chosen by the largest coordinate."""
        from src.whitted.geometry.cube import Cube
        from src.whitted.materials.material import Material
        from src.whitted.materials.patterns import CubeMap
        from src.whitted.scene.objects import Object
        from src.whitted.scene.world import World

        cube_map = CubeMap(*[_card(c) for c in self.FACE_COLOURS])
        cube = Object(Cube(), material=Material(cube_map))
        world = World([cube])
        assert _close(world.raw_colour_at(cube, point), self.FACE_COLOURS[face])

    def test_cube_map_uses_face_uv(self):
        """Test a face pattern sees that face's own (u, v) square."""
        from src.whitted.geometry.cube import Cube
        from src.whitted.materials.material import Material
        from src.whitted.materials.patterns import CubeMap
        from src.whitted.scene.objects import Object
        from src.whitted.scene.world import World

        cube_map = CubeMap(*[_card(c) for c in self.FACE_COLOURS])
        cube = Object(Cube(), material=Material(cube_map))
        world = World([cube])
        # Back face, u = 0.05 and v = 0.95
        assert _close(world.raw_colour_at(cube, (0.9, 0.9, -1)), (1.0, 0.0, 0.0))
        # Right face, u = 0.95 and v = 0.05
        assert _close(world.raw_colour_at(cube, (1, -0.9, -0.9)), (0.0, 1.0, 1.0))

    @pytest.mark.parametrize(
        "point, expected",
        [
            ((1, 0.5, 0), (1.0, 0.0, 0.0)),
            ((0, 1, 0), (0.0, 1.0, 0.0)),
            ((0, 0, 0), (0.0, 0.0, 1.0)),
            # Top cap is seen from above with -z up
            ((-0.9, 1, -0.9), (1.0, 0.0, 0.0)),
            # Bottom cap is seen from below with +z up
            ((-0.9, 0, -0.9), (0.0, 1.0, 0.0)),
            ((0.9, 0, 0.9), (1.0, 1.0, 0.0)),
        ],
    )
    def test_capped_cylinder_map(self, point, expected):
        """Test sides and caps of a closed cylinder use their own patterns."""
        from src.whitted.geometry.cylinder import Cylinder
        from src.whitted.materials.material import Material
        from src.whitted.materials.patterns import AlignmentCheck, CappedCylinderMap
        from src.whitted.scene.objects import Object
        from src.whitted.scene.world import World

        top = AlignmentCheck(main=(0.0, 1.0, 0.0), top_left=(1.0, 0.0, 0.0))
        bottom = AlignmentCheck(
            main=(0.0, 0.0, 1.0), bottom_left=(0.0, 1.0, 0.0), top_right=(1.0, 1.0, 0.0)
        )
        pattern = CappedCylinderMap(_card((1.0, 0.0, 0.0)), top, bottom)
        cylinder = Object(Cylinder(minimum=0, maximum=1, closed=True), material=Material(pattern))
        world = World([cylinder])
        assert _close(world.raw_colour_at(cylinder, point), expected)

    def test_open_cylinder_shows_only_sides(self):
        """Test an open cylinder never selects a cap pattern."""
        from src.whitted.geometry.cylinder import Cylinder
        from src.whitted.materials.material import Material
        from src.whitted.materials.patterns import CappedCylinderMap
        from src.whitted.scene.objects import Object
        from src.whitted.scene.world import World

        pattern = CappedCylinderMap(_card(WHITE), _card(BLACK), _card(BLACK))
        cylinder = Object(Cylinder(minimum=0, maximum=1), material=Material(pattern))
        world = World([cylinder])
        assert _close(world.raw_colour_at(cylinder, (1, 1, 0)), WHITE)

    def test_faces_stored_after_given_patterns(self):
        """Test face patterns are appended once and referenced by id."""
        from src.whitted.materials import patterns

        shared = _card(WHITE)
        other = _card(BLACK)
        cube_map = patterns.CubeMap(shared, shared, other, other, shared, other)
        ids = patterns.upload_patterns([other, cube_map])
        assert ids == [0, 1]
        assert patterns.get_pattern_count() == 3
        faces = [int(patterns.pattern_faces[1, f]) for f in range(6)]
        assert faces == [2, 2, 0, 0, 2, 0]
        assert int(patterns.pattern_faces[0, 0]) == -1

    def test_faces_count_toward_capacity(self):
        """Test the capacity check includes the appended face patterns."""
        from src.whitted.materials.patterns import MAX_PATTERNS, CappedCylinderMap, Solid, upload_patterns

        pattern = CappedCylinderMap(_card(WHITE), _card(WHITE), _card(BLACK))
        with pytest.raises(RuntimeError, match="Maximum number of patterns"):
            upload_patterns([Solid()] * (MAX_PATTERNS - 2) + [pattern])

    def test_face_must_be_uv_pattern(self):
        """Test procedural and nested multi-face patterns cannot be faces."""
        from src.whitted.materials.patterns import CappedCylinderMap, Striped

        with pytest.raises(ValueError):
            CappedCylinderMap(Striped(), _card(WHITE), _card(WHITE))
        inner = CappedCylinderMap(_card(WHITE), _card(WHITE), _card(WHITE))
        with pytest.raises(ValueError):
            CappedCylinderMap(inner, _card(WHITE), _card(WHITE))

    def test_face_cannot_be_transformed_or_remapped(self):
        """Test faces keep the identity transform and the automatic mapping."""
        from src.whitted.core.transform import Transform
        from src.whitted.geometry.uv import UVMapping
        from src.whitted.materials.patterns import AlignmentCheck, CappedCylinderMap, UVCheckers

        moved = AlignmentCheck(transform=Transform.scaling(2, 2, 2))
        with pytest.raises(ValueError):
            CappedCylinderMap(moved, _card(WHITE), _card(WHITE))
        remapped = UVCheckers(mapping=UVMapping.PLANAR)
        with pytest.raises(ValueError):
            CappedCylinderMap(remapped, _card(WHITE), _card(WHITE))
