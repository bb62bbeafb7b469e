"""Procedural and image-mapped colour patterns.

A pattern is a colour function of a point in its own local space. Every
pattern carries a transform that is composed *after* the owning object's
transform, so a texture can be scaled or offset independently of how the
object is placed in the world:

    pattern_point = pattern.inverse * (object.inverse * world_point)

Supported kinds:
    - Solid: a single colour
    - Striped: alternates by floor(x) mod 2
    - Gradient: linear blend along x using the fractional part
    - Ring: alternates by floor(distance from the y axis) mod 2
    - Checkers: alternates by floor(x) + floor(y) + floor(z) mod 2
    - UVCheckers: a checkerboard in texture (u, v) space
    - UVImage: an RGB image sampled at (u, v) with nearest or bilinear lookup
    - AlignmentCheck: one colour with a marked square in each (u, v) corner
    - CubeMap: a UV pattern per cube face
    - CappedCylinderMap: UV patterns for the sides and each cap of a cylinder

UV patterns turn the pattern-space point into (u, v) through either the
shape's native mapping (``UVMapping.AUTO``) or an explicit one.
Multi-face patterns pick a face first and then evaluate that face's own UV
pattern with the face's (u, v); the face patterns are stored in the same
table and referenced by id.

Pattern data lives in Taichi fields (Structure of Arrays) indexed by pattern
id; image texels share one flat buffer addressed by per-texture offsets.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.materials.patterns import Striped, upload_patterns
    >>> ids = upload_patterns([Striped((1, 1, 1), (0, 0, 0))])
    >>> # Use pattern_colour_at within a Taichi kernel
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

from src.whitted.core.transform import Transform, transform_point
from src.whitted.geometry.uv import UVMapping

logger = logging.getLogger(__name__)

vec2 = tm.vec2
vec3 = tm.vec3

Colour = tuple[float, float, float]

BLACK: Colour = (0.0, 0.0, 0.0)
WHITE: Colour = (1.0, 1.0, 1.0)

# Coordinates this close below an integer are nudged up to it
PATTERN_NUDGE = 1e-5


class PatternKind(IntEnum):
    """Tag used to dispatch pattern evaluation in kernels."""

    SOLID = 0
    STRIPED = 1
    GRADIENT = 2
    RING = 3
    CHECKERS = 4
    UV_CHECKERS = 5
    UV_IMAGE = 6
    ALIGNMENT_CHECK = 7
    CUBE_MAP = 8
    CAPPED_CYLINDER_MAP = 9


class TextureFilter(IntEnum):
    """Image lookup mode for UV image patterns."""

    NEAREST = 0
    BILINEAR = 1


def _colour(value) -> Colour:
    r, g, b = value
    return (float(r), float(g), float(b))


# =============================================================================
# Pattern Data Structures
# =============================================================================


@dataclass(eq=False)
class Pattern:
    """Base class for all patterns.

    Attributes:
        transform: Pattern-space placement relative to the owning object.
    """

    kind = PatternKind.SOLID

    transform: Transform = field(default_factory=Transform.identity, kw_only=True)

    def __post_init__(self) -> None:
        # Fails early with SingularMatrix for unusable pattern transforms
        self.inverse = self.transform.inverse()

    def colours(self) -> tuple[Colour, Colour]:
        """Return the two colours stored for this pattern."""
        return BLACK, BLACK


@dataclass(eq=False)
class Solid(Pattern):
    """A single uniform colour."""

    kind = PatternKind.SOLID

    colour: Colour = WHITE

    def colours(self) -> tuple[Colour, Colour]:
        return _colour(self.colour), _colour(self.colour)


@dataclass(eq=False)
class _TwoColourPattern(Pattern):
    a: Colour = WHITE
    b: Colour = BLACK

    def colours(self) -> tuple[Colour, Colour]:
        return _colour(self.a), _colour(self.b)


@dataclass(eq=False)
class Striped(_TwoColourPattern):
    """Stripes of ``a`` and ``b`` alternating every unit along x."""

    kind = PatternKind.STRIPED


@dataclass(eq=False)
class Gradient(_TwoColourPattern):
    """Linear blend from ``a`` to ``b`` repeating every unit along x."""

    kind = PatternKind.GRADIENT


@dataclass(eq=False)
class Ring(_TwoColourPattern):
    """Concentric rings around the y axis."""

    kind = PatternKind.RING


@dataclass(eq=False)
class Checkers(_TwoColourPattern):
    """A 3D checkerboard of unit cubes."""

    kind = PatternKind.CHECKERS


@dataclass(eq=False)
class UVCheckers(_TwoColourPattern):
    """A checkerboard in texture space.

    Attributes:
        width: Number of squares across u.
        height: Number of squares across v.
        mapping: How points become (u, v).
    """

    kind = PatternKind.UV_CHECKERS

    width: int = 2
    height: int = 2
    mapping: UVMapping = UVMapping.AUTO

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"UV checker dimensions must be positive, got {self.width}x{self.height}"
            )


@dataclass(eq=False)
class UVImage(Pattern):
    """An RGB image mapped onto a surface through (u, v).

    Attributes:
        image: Array of shape (height, width, 3), either uint8 or floats in
            [0, 1]. Row 0 is the top of the image (v = 1).
        filter: Nearest or bilinear lookup.
        mapping: How points become (u, v).
    """

    kind = PatternKind.UV_IMAGE

    image: npt.NDArray = field(default_factory=lambda: np.ones((1, 1, 3), dtype=np.float32))
    filter: TextureFilter = TextureFilter.NEAREST
    mapping: UVMapping = UVMapping.AUTO

    def __post_init__(self) -> None:
        super().__post_init__()
        image = np.asarray(self.image)
        if image.ndim != 3 or image.shape[2] != 3 or image.shape[0] == 0 or image.shape[1] == 0:
            raise ValueError(f"UV image must have shape (height, width, 3), got {image.shape}")
        if image.dtype == np.uint8:
            image = image.astype(np.float32) / 255.0
        self.image = np.ascontiguousarray(image, dtype=np.float32)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs) -> "UVImage":
        """Load an image file with Pillow and wrap it as a UV pattern."""
        with PILImage.open(path) as img:
            pixels = np.asarray(img.convert("RGB"), dtype=np.uint8)
        return cls(image=pixels, **kwargs)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


@dataclass(eq=False)
class AlignmentCheck(Pattern):
    """A UV test card: one colour with a differently coloured square in each corner.

    Corners cover the outer fifth of each texture square in u and v (top is
    v near 1). On a cube map, each corner of the cube should show the same
    colour on every face that shares it.

    Attributes:
        main: Colour away from the corners.
        top_left: Colour of the u near 0, v near 1 corner.
        top_right: Colour of the u near 1, v near 1 corner.
        bottom_left: Colour of the u near 0, v near 0 corner.
        bottom_right: Colour of the u near 1, v near 0 corner.
        mapping: How points become (u, v).
    """

    kind = PatternKind.ALIGNMENT_CHECK

    main: Colour = WHITE
    top_left: Colour = (1.0, 0.0, 0.0)
    top_right: Colour = (1.0, 1.0, 0.0)
    bottom_left: Colour = (0.0, 1.0, 0.0)
    bottom_right: Colour = (0.0, 1.0, 1.0)
    mapping: UVMapping = UVMapping.AUTO

    def colours(self) -> tuple[Colour, Colour]:
        return _colour(self.main), _colour(self.main)

    def corners(self) -> tuple[Colour, Colour, Colour, Colour]:
        """Corner colours in the order top-left, top-right, bottom-left, bottom-right."""
        return (
            _colour(self.top_left),
            _colour(self.top_right),
            _colour(self.bottom_left),
            _colour(self.bottom_right),
        )


# Patterns that can cover one face of a multi-face pattern
FACE_PATTERN_TYPES = (UVCheckers, UVImage, AlignmentCheck)


@dataclass(eq=False)
class _MultiFacePattern(Pattern):
    def __post_init__(self) -> None:
        super().__post_init__()
        identity = Transform.identity()
        for face in self.faces:
            if not isinstance(face, FACE_PATTERN_TYPES):
                raise ValueError(f"Face patterns must be UV patterns, got {type(face).__name__}")
            if face.mapping != UVMapping.AUTO:
                raise ValueError(
                    f"Face patterns take their (u, v) from the face, got mapping {face.mapping.name}"
                )
            if face.transform != identity:
                raise ValueError("Face patterns are placed by their parent pattern and cannot be transformed")

    @property
    def faces(self) -> tuple[Pattern, ...]:
        raise NotImplementedError


@dataclass(eq=False)
class CubeMap(_MultiFacePattern):
    """A separate UV pattern on each face of a cube.

    The face is chosen by the largest coordinate of the pattern-space point,
    and each face pattern sees that face's own unit square of (u, v).
    """

    kind = PatternKind.CUBE_MAP

    front: Pattern
    back: Pattern
    left: Pattern
    right: Pattern
    up: Pattern
    down: Pattern

    @property
    def faces(self) -> tuple[Pattern, ...]:
        """Face patterns indexed by ``CubeFace``."""
        return (self.front, self.back, self.left, self.right, self.up, self.down)


@dataclass(eq=False)
class CappedCylinderMap(_MultiFacePattern):
    """Separate UV patterns for the sides and caps of a closed cylinder or cone.

    On any other shape, or an open cylinder, only ``sides`` is visible.
    """

    kind = PatternKind.CAPPED_CYLINDER_MAP

    sides: Pattern
    top: Pattern
    bottom: Pattern

    @property
    def faces(self) -> tuple[Pattern, ...]:
        """Face patterns indexed by ``CylinderFace``."""
        return (self.sides, self.top, self.bottom)


# =============================================================================
# Taichi Fields for Pattern Storage
# =============================================================================

# Maximum number of patterns in a committed scene
MAX_PATTERNS = 1024

# Maximum number of distinct textures and their total texel count
MAX_TEXTURES = 64
MAX_TEXELS = 4 * 1024 * 1024

# Faces of the largest multi-face pattern (a cube)
MAX_PATTERN_FACES = 6

pattern_kind = ti.field(dtype=ti.i32, shape=MAX_PATTERNS)
pattern_colour_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PATTERNS)
pattern_colour_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PATTERNS)
pattern_inverse = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_PATTERNS)
# UV patterns: mapping, filter, texture id, checker width/height
pattern_mapping = ti.field(dtype=ti.i32, shape=MAX_PATTERNS)
pattern_filter = ti.field(dtype=ti.i32, shape=MAX_PATTERNS)
pattern_texture = ti.field(dtype=ti.i32, shape=MAX_PATTERNS)
pattern_uv_size = ti.Vector.field(2, dtype=ti.f32, shape=MAX_PATTERNS)
# Alignment checks: corner colours (top-left, top-right, bottom-left, bottom-right)
pattern_corners = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_PATTERNS, 4))
# Multi-face patterns: pattern id of each face, -1 where unused
pattern_faces = ti.field(dtype=ti.i32, shape=(MAX_PATTERNS, MAX_PATTERN_FACES))
num_patterns = ti.field(dtype=ti.i32, shape=())

texture_offset = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_width = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_height = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_textures = ti.field(dtype=ti.i32, shape=())


def clear_patterns() -> None:
    """Remove all patterns and textures.

    Resets the counts to zero; field data is overwritten on the next upload.
    """
    num_patterns[None] = 0
    num_textures[None] = 0


@ti.kernel
def _write_texels(offset: ti.i32, data: ti.types.ndarray()):
    for i in range(data.shape[0]):
        texels[offset + i] = vec3(data[i, 0], data[i, 1], data[i, 2])


def _flatten(patterns: list[Pattern]) -> list[Pattern]:
    """Append the face patterns of multi-face patterns after the given ones.

    A face pattern already in the table (by identity) is not added again.
    """
    table = list(patterns)
    seen = {id(pattern) for pattern in table}
    for pattern in patterns:
        if isinstance(pattern, _MultiFacePattern):
            for face in pattern.faces:
                if id(face) not in seen:
                    seen.add(id(face))
                    table.append(face)
    return table


def upload_patterns(patterns: list[Pattern]) -> list[int]:
    """Upload patterns (and any textures they reference) to Taichi fields.

    Replaces all previously uploaded patterns. Images shared by several
    patterns are stored once. Face patterns of cube and capped-cylinder maps
    are stored after the given patterns and referenced from their parent's
    face table.

    Args:
        patterns: The patterns to upload; the returned ids follow this order.

    Returns:
        Pattern ids for use in the material table.

    Raises:
        RuntimeError: If the pattern, texture or texel capacity is exceeded.
    """
    table = _flatten(patterns)
    if len(table) > MAX_PATTERNS:
        raise RuntimeError(f"Maximum number of patterns ({MAX_PATTERNS}) exceeded")

    kinds = np.zeros(MAX_PATTERNS, dtype=np.int32)
    colour_a = np.zeros((MAX_PATTERNS, 3), dtype=np.float32)
    colour_b = np.zeros((MAX_PATTERNS, 3), dtype=np.float32)
    inverses = np.zeros((MAX_PATTERNS, 4, 4), dtype=np.float32)
    mappings = np.zeros(MAX_PATTERNS, dtype=np.int32)
    filters = np.zeros(MAX_PATTERNS, dtype=np.int32)
    textures = np.full(MAX_PATTERNS, -1, dtype=np.int32)
    uv_sizes = np.ones((MAX_PATTERNS, 2), dtype=np.float32)
    corners = np.zeros((MAX_PATTERNS, 4, 3), dtype=np.float32)
    faces = np.full((MAX_PATTERNS, MAX_PATTERN_FACES), -1, dtype=np.int32)

    texture_ids: dict[int, int] = {}
    images: list[npt.NDArray[np.float32]] = []
    # First table position of each pattern, for face references
    positions: dict[int, int] = {}

    for i, pattern in enumerate(table):
        positions.setdefault(id(pattern), i)
        kinds[i] = int(pattern.kind)
        colour_a[i], colour_b[i] = pattern.colours()
        inverses[i] = pattern.inverse.to_numpy()
        if isinstance(pattern, UVCheckers):
            mappings[i] = int(pattern.mapping)
            uv_sizes[i] = (pattern.width, pattern.height)
        elif isinstance(pattern, AlignmentCheck):
            mappings[i] = int(pattern.mapping)
            corners[i] = pattern.corners()
        elif isinstance(pattern, UVImage):
            mappings[i] = int(pattern.mapping)
            filters[i] = int(pattern.filter)
            key = id(pattern.image)
            if key not in texture_ids:
                texture_ids[key] = len(images)
                images.append(pattern.image)
            textures[i] = texture_ids[key]

    for i, pattern in enumerate(table):
        if isinstance(pattern, _MultiFacePattern):
            for f, face in enumerate(pattern.faces):
                faces[i, f] = positions[id(face)]

    _upload_textures(images)

    pattern_kind.from_numpy(kinds)
    pattern_colour_a.from_numpy(colour_a)
    pattern_colour_b.from_numpy(colour_b)
    pattern_inverse.from_numpy(inverses)
    pattern_mapping.from_numpy(mappings)
    pattern_filter.from_numpy(filters)
    pattern_texture.from_numpy(textures)
    pattern_uv_size.from_numpy(uv_sizes)
    pattern_corners.from_numpy(corners)
    pattern_faces.from_numpy(faces)
    num_patterns[None] = len(table)

    return list(range(len(patterns)))


def _upload_textures(images: list[npt.NDArray[np.float32]]) -> None:
    if len(images) > MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    total = sum(image.shape[0] * image.shape[1] for image in images)
    if total > MAX_TEXELS:
        raise RuntimeError(f"Maximum number of texels ({MAX_TEXELS}) exceeded")

    offset = 0
    for index, image in enumerate(images):
        height, width = image.shape[:2]
        texture_offset[index] = offset
        texture_width[index] = width
        texture_height[index] = height
        _write_texels(offset, image.reshape(-1, 3))
        offset += width * height
    num_textures[None] = len(images)
    if images:
        logger.debug("Uploaded %d textures (%d texels)", len(images), total)


def get_pattern_count() -> int:
    """Get the number of uploaded patterns."""
    return int(num_patterns[None])


# =============================================================================
# Pattern Evaluation
# =============================================================================


@ti.func
def _nudge(x: ti.f32) -> ti.f32:
    """Push values a hair below an integer onto it to avoid pattern acne."""
    delta = ti.ceil(x) - x
    result = x
    if delta > 0.0 and delta < PATTERN_NUDGE:
        result = x + PATTERN_NUDGE
    return result


@ti.func
def _parity(x: ti.f32) -> ti.f32:
    """floor(x) mod 2 as 0.0 or 1.0, correct for negative x."""
    f = ti.floor(x)
    return f - 2.0 * ti.floor(f / 2.0)


@ti.func
def _texel(texture: ti.i32, x: ti.i32, y: ti.i32) -> vec3:
    return texels[texture_offset[texture] + y * texture_width[texture] + x]


@ti.func
def sample_texture(texture: ti.i32, uv: vec2, mode: ti.i32) -> vec3:
    """Look up a texture at (u, v).

    v = 0 is the bottom row of the image, so v is flipped before indexing.
    Coordinates wrap into [0, 1).

    Args:
        texture: Texture id.
        uv: Texture coordinates.
        mode: ``TextureFilter`` value.

    Returns:
        The RGB colour at (u, v).
    """
    width = texture_width[texture]
    height = texture_height[texture]
    u = uv[0] - ti.floor(uv[0])
    v = 1.0 - uv[1]
    v = v - ti.floor(v)
    fx = u * ti.cast(width - 1, ti.f32)
    fy = v * ti.cast(height - 1, ti.f32)

    colour = vec3(0.0, 0.0, 0.0)
    if mode == int(TextureFilter.BILINEAR):
        x0 = ti.cast(ti.floor(fx), ti.i32)
        y0 = ti.cast(ti.floor(fy), ti.i32)
        x1 = ti.min(x0 + 1, width - 1)
        y1 = ti.min(y0 + 1, height - 1)
        wx = fx - ti.cast(x0, ti.f32)
        wy = fy - ti.cast(y0, ti.f32)
        top = _texel(texture, x0, y0) * (1.0 - wx) + _texel(texture, x1, y0) * wx
        bottom = _texel(texture, x0, y1) * (1.0 - wx) + _texel(texture, x1, y1) * wx
        colour = top * (1.0 - wy) + bottom * wy
    else:
        x = ti.min(ti.cast(ti.floor(fx + 0.5), ti.i32), width - 1)
        y = ti.min(ti.cast(ti.floor(fy + 0.5), ti.i32), height - 1)
        colour = _texel(texture, x, y)
    return colour


@ti.func
def pattern_space_point(pattern: ti.i32, object_point: vec3) -> vec3:
    """Carry an object-space point into the pattern's own space."""
    return transform_point(pattern_inverse[pattern], object_point)


@ti.func
def is_uv_pattern(pattern: ti.i32) -> ti.i32:
    kind = pattern_kind[pattern]
    return (
        kind == int(PatternKind.UV_CHECKERS)
        or kind == int(PatternKind.UV_IMAGE)
        or kind == int(PatternKind.ALIGNMENT_CHECK)
    )


@ti.func
def face_pattern(pattern: ti.i32, face: ti.i32) -> ti.i32:
    """Pattern id covering one face of a multi-face pattern."""
    return pattern_faces[pattern, face]


@ti.func
def _alignment_colour(pattern: ti.i32, uv: vec2) -> vec3:
    u = uv[0] - ti.floor(uv[0])
    v = uv[1] - ti.floor(uv[1])
    colour = pattern_colour_a[pattern]
    corner = -1
    if v >= 0.8:
        if u <= 0.2:
            corner = 0
        elif u >= 0.8:
            corner = 1
    elif v <= 0.2:
        if u <= 0.2:
            corner = 2
        elif u >= 0.8:
            corner = 3
    if corner >= 0:
        colour = pattern_corners[pattern, corner]
    return colour


@ti.func
def pattern_colour_at(pattern: ti.i32, point: vec3, uv: vec2) -> vec3:
    """Evaluate a pattern at a pattern-space point.

    Args:
        pattern: Pattern id.
        point: The point in pattern space (see ``pattern_space_point``).
        uv: Texture coordinates of the point; only read by UV patterns.

    Returns:
        The pattern colour.
    """
    kind = pattern_kind[pattern]
    a = pattern_colour_a[pattern]
    b = pattern_colour_b[pattern]

    x = _nudge(point.x)
    y = _nudge(point.y)
    z = _nudge(point.z)

    colour = a
    if kind == int(PatternKind.STRIPED):
        if _parity(x) != 0.0:
            colour = b
    elif kind == int(PatternKind.GRADIENT):
        colour = a + (b - a) * (point.x - ti.floor(point.x))
    elif kind == int(PatternKind.RING):
        if _parity(_nudge(ti.sqrt(point.x * point.x + point.z * point.z))) != 0.0:
            colour = b
    elif kind == int(PatternKind.CHECKERS):
        if _parity(ti.floor(x) + ti.floor(y) + ti.floor(z)) != 0.0:
            colour = b
    elif kind == int(PatternKind.UV_CHECKERS):
        size = pattern_uv_size[pattern]
        u_cell = ti.floor(_nudge(uv[0] * size[0]))
        v_cell = ti.floor(_nudge(uv[1] * size[1]))
        if _parity(u_cell + v_cell) != 0.0:
            colour = b
    elif kind == int(PatternKind.UV_IMAGE):
        colour = sample_texture(pattern_texture[pattern], uv, pattern_filter[pattern])
    elif kind == int(PatternKind.ALIGNMENT_CHECK):
        colour = _alignment_colour(pattern, uv)
    return colour
