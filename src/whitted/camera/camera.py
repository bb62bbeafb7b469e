"""Pinhole camera defined by an image size, field of view and view transform.

The canvas sits one unit in front of the eye (z = -1 in camera space). Its
half-extents follow from the field of view and the aspect ratio, so the
longer image side always spans the full field of view:

- half_view = tan(field_of_view / 2)
- aspect >= 1: half_width = half_view, half_height = half_view / aspect
- aspect < 1: half_width = half_view * aspect, half_height = half_view

Pixel (0, 0) is the top-left corner. A ray through pixel (px, py) at
sub-pixel offset (ox, oy) aims at camera-space point
``(half_width - (px + ox) * pixel_size, half_height - (py + oy) * pixel_size, -1)``.
Both that point and the eye are carried to world space by the inverse view
transform.

Example:
    >>> import math
    >>> from src.whitted.camera.camera import Camera
    >>> from src.whitted.core.vectors import Vector3D
    >>> camera = Camera(201, 101, math.pi / 2)
    >>> ray = camera.ray_at(100, 50)
    >>> ray.direction.isclose(Vector3D(0, 0, -1))
    True
"""

import math
from dataclasses import dataclass, field

import taichi as ti
import taichi.math as tm

from src.whitted.core.ray import Ray3D
from src.whitted.core.transform import Transform, transform_point
from src.whitted.core.vectors import ORIGIN, Point3D, Vector3D

vec3 = tm.vec3

# Canvas distance from the eye in camera space
CANVAS_DISTANCE = 1.0


@dataclass
class Camera:
    """Configuration for a pinhole camera.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        field_of_view: Horizontal (or vertical, for portrait images) field of
            view in radians.
        transform: World-to-camera view transform.

    Raises:
        ValueError: If the size is not positive or the field of view is not
            in (0, pi).
        SingularMatrix: If the view transform cannot be inverted.
    """

    width: int
    height: int
    field_of_view: float
    transform: Transform = field(default_factory=Transform.identity)

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Camera size must be positive, got {self.width}x{self.height}")
        if not 0.0 < self.field_of_view < math.pi:
            raise ValueError(f"Field of view must be in (0, pi), got {self.field_of_view}")

        half_view = math.tan(self.field_of_view / 2.0)
        aspect = self.width / self.height
        if aspect >= 1.0:
            self.half_width = half_view
            self.half_height = half_view / aspect
        else:
            self.half_width = half_view * aspect
            self.half_height = half_view
        self.pixel_size = 2.0 * self.half_width / self.width
        self.inverse = self.transform.inverse()

    @classmethod
    def look_at(
        cls,
        width: int,
        height: int,
        field_of_view: float,
        from_point: Point3D | tuple[float, float, float],
        to_point: Point3D | tuple[float, float, float],
        up: Vector3D | tuple[float, float, float] = (0.0, 1.0, 0.0),
    ) -> "Camera":
        """Build a camera with a view transform from eye, target and up."""
        return cls(width, height, field_of_view, Transform.view(from_point, to_point, up))

    def ray_at(self, px: float, py: float, ox: float = 0.5, oy: float = 0.5) -> Ray3D:
        """Ray from the eye through a point of a pixel.

        Args:
            px: Pixel column (0 = left).
            py: Pixel row (0 = top).
            ox: Horizontal offset within the pixel, in [0, 1).
            oy: Vertical offset within the pixel, in [0, 1).

        Returns:
            A world-space ray with a unit direction.
        """
        world_x = self.half_width - (px + ox) * self.pixel_size
        world_y = self.half_height - (py + oy) * self.pixel_size

        pixel = self.inverse @ Point3D(world_x, world_y, -CANVAS_DISTANCE)
        origin = self.inverse @ ORIGIN
        return Ray3D(origin, (pixel - origin).normalize())


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_inverse = ti.Matrix.field(4, 4, dtype=ti.f32, shape=())
_half_width = ti.field(dtype=ti.f32, shape=())
_half_height = ti.field(dtype=ti.f32, shape=())
_pixel_size = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: Camera) -> None:
    """Copy a camera's derived parameters into Taichi fields.

    Must be called before ``camera_ray`` is used in a kernel.
    """
    _camera_inverse[None] = camera.inverse.to_numpy()
    _half_width[None] = camera.half_width
    _half_height[None] = camera.half_height
    _pixel_size[None] = camera.pixel_size


@ti.func
def camera_ray(px: ti.i32, py: ti.i32, ox: ti.f32, oy: ti.f32):
    """Generate the world-space ray through a point of a pixel.

    Args:
        px: Pixel column (0 = left).
        py: Pixel row (0 = top).
        ox: Horizontal offset within the pixel.
        oy: Vertical offset within the pixel.

    Returns:
        Tuple of (origin, unit direction).
    """
    size = _pixel_size[None]
    world_x = _half_width[None] - (ti.cast(px, ti.f32) + ox) * size
    world_y = _half_height[None] - (ti.cast(py, ti.f32) + oy) * size

    inverse = _camera_inverse[None]
    pixel = transform_point(inverse, vec3(world_x, world_y, -CANVAS_DISTANCE))
    origin = transform_point(inverse, vec3(0.0, 0.0, 0.0))
    return origin, tm.normalize(pixel - origin)
