"""Render loop: camera rays, tracing and sample accumulation.

``render`` commits the world, uploads the camera and the sampling offsets,
then walks the image in batches of ``RAY_BATCH`` pixels. For every sample
offset it generates one camera ray per pixel of the batch, traces the batch
in parallel and adds ``colour / n_samples`` into the pixel buffer. Each
parallel iteration owns one ray slot and writes only its own pixel.

The pixel buffer is preallocated at the maximum image size to avoid kernel
recompilation; only the active region is copied out.

Example:
    >>> import math
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.camera.camera import Camera
    >>> from src.whitted.core.renderer import render
    >>> from src.whitted.scene.default_world import default_world
    >>> camera = Camera.look_at(11, 11, math.pi / 2, (0, 0, -5), (0, 0, 0), (0, 1, 0))
    >>> canvas = render(default_world(), camera)
    >>> canvas.pixel_at(5, 5)  # ~(0.38066, 0.47583, 0.2855)
"""

import logging
import time
from collections.abc import Callable

import taichi as ti
import taichi.math as tm

from src.whitted.camera.camera import Camera, camera_ray, setup_camera
from src.whitted.camera.sampling import Sampling, Single, sample_offset, upload_offsets
from src.whitted.core.canvas import Canvas
from src.whitted.core.tracer import RAY_BATCH, ray_colour, ray_direction, ray_origin, trace_batch
from src.whitted.scene.world import World

logger = logging.getLogger(__name__)

vec3 = tm.vec3

ProgressCallback = Callable[[int, int], None]

# =============================================================================
# Render Target
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_pixel_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))


def check_image_size(width: int, height: int) -> None:
    """Validate an image size against the preallocated buffer.

    Raises:
        ValueError: If either dimension is not positive or exceeds the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _clear_pixels(width: ti.i32, height: ti.i32):
    for y, x in ti.ndrange(height, width):
        _pixel_buffer[y, x] = vec3(0.0, 0.0, 0.0)


@ti.kernel
def _generate_camera_rays(start: ti.i32, count: ti.i32, width: ti.i32, sample: ti.i32):
    """Write the camera rays of one sample offset for a batch of pixels."""
    offset = sample_offset[sample]
    for i in range(count):
        pixel = start + i
        origin, direction = camera_ray(pixel % width, pixel // width, offset.x, offset.y)
        ray_origin[i] = origin
        ray_direction[i] = direction


@ti.kernel
def _accumulate(start: ti.i32, count: ti.i32, width: ti.i32, weight: ti.f32):
    for i in range(count):
        pixel = start + i
        _pixel_buffer[pixel // width, pixel % width] += ray_colour[i] * weight


# =============================================================================
# Public Rendering API
# =============================================================================


def render(
    world: World,
    camera: Camera,
    sampling: Sampling | None = None,
    use_acceleration: bool | None = None,
    callback: ProgressCallback | None = None,
) -> Canvas:
    """Render a world through a camera.

    Args:
        world: The scene to render.
        camera: The camera; its size is the image size.
        sampling: Sub-pixel sampling strategy; defaults to ``Single()``.
        use_acceleration: Override ``world.settings.use_acceleration``.
        callback: Called with (pixels_done, total_pixels) after each batch.

    Returns:
        The rendered canvas (linear RGB, unclamped).

    Raises:
        ValueError: If the camera size exceeds the maximum image size.
    """
    sampling = sampling or Single()
    width, height = camera.width, camera.height
    check_image_size(width, height)
    if use_acceleration is None:
        use_acceleration = world.settings.use_acceleration

    world.commit()
    setup_camera(camera)
    n_samples = upload_offsets(sampling)
    weight = 1.0 / n_samples
    settings = world.settings

    _clear_pixels(width, height)
    total = width * height
    for start in range(0, total, RAY_BATCH):
        count = min(RAY_BATCH, total - start)
        for sample in range(n_samples):
            _generate_camera_rays(start, count, width, sample)
            trace_batch(count, settings.max_depth, settings.shadow_bias, use_acceleration)
            _accumulate(start, count, width, weight)
        logger.debug("Rendered pixels %d-%d of %d", start, start + count, total)
        if callback is not None:
            callback(start + count, total)

    pixels = _pixel_buffer.to_numpy()[:height, :width, :].copy()
    return Canvas(pixels)


class Renderer:
    """Repeatable renderer with timing logs.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        sampling: Sub-pixel sampling strategy; defaults to ``Single()``.

    Raises:
        ValueError: If the size exceeds the maximum image size.
    """

    def __init__(self, width: int, height: int, sampling: Sampling | None = None) -> None:
        check_image_size(width, height)
        self.width = width
        self.height = height
        self.sampling = sampling or Single()
        self.last_render_seconds: float | None = None

    def camera(self, field_of_view: float, from_point, to_point, up=(0.0, 1.0, 0.0)) -> Camera:
        """Build a camera of this renderer's size."""
        return Camera.look_at(self.width, self.height, field_of_view, from_point, to_point, up)

    def render(
        self,
        world: World,
        camera: Camera,
        use_acceleration: bool | None = None,
        callback: ProgressCallback | None = None,
    ) -> Canvas:
        """Render a world; the camera must match this renderer's size.

        Raises:
            ValueError: If the camera size differs from the renderer size.
        """
        if (camera.width, camera.height) != (self.width, self.height):
            raise ValueError(
                f"Camera size {camera.width}x{camera.height} does not match "
                f"renderer size {self.width}x{self.height}"
            )

        logger.info("Rendering %dx%d image", self.width, self.height)
        start = time.perf_counter()
        canvas = render(world, camera, self.sampling, use_acceleration, callback)
        self.last_render_seconds = time.perf_counter() - start
        logger.info("Render finished in %.3f s", self.last_render_seconds)
        return canvas
