"""Whitted-style recursive tracing with an explicit work stack.

The colour of a ray is the local shading at its closest hit plus the
reflected colour (scaled by the material's ``reflective`` coefficient) plus
the refracted colour (scaled by ``transparency``). Each secondary ray costs
one level of the remaining depth; at depth 0 a hit is shaded but never
spawns secondary rays.

Taichi functions cannot recurse, so every ray slot owns a row of a small
work stack of (origin, direction, weight, depth) entries. Popping an entry
traces it and adds ``weight * shade`` to the slot's colour; reflective and
transparent hits push their secondary rays with the product weight. The
result is the same weighted sum the recursive definition produces.

Depth-first order bounds the stack at ``max_depth + 1`` entries, so each
row holds ``MAX_TRACE_DEPTH + 2``.

Example:
    >>> import numpy as np
    >>> from src.whitted.core.tracer import trace_rays
    >>> # after World.commit():
    >>> colours = trace_rays(np.array([[0, 0, -5]]), np.array([[0, 0, 1]]), 5, 1e-4, True)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.whitted.core.ray import reflect, refract
from src.whitted.core.shading import shade_hit
from src.whitted.materials.material import (
    material_reflective,
    material_refractive_index,
    material_transparency,
)
from src.whitted.scene.intersection import intersect_scene, node_material, node_normal_at

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Tracing Constants
# =============================================================================

# Largest supported recursion depth
MAX_TRACE_DEPTH = 16

# Work-stack entries per ray slot
STACK_SIZE = MAX_TRACE_DEPTH + 2

# Number of rays traced per kernel launch
RAY_BATCH = 16384

# =============================================================================
# Ray Batch and Work Stack
# =============================================================================

ray_origin = ti.Vector.field(3, dtype=ti.f32, shape=RAY_BATCH)
ray_direction = ti.Vector.field(3, dtype=ti.f32, shape=RAY_BATCH)
ray_colour = ti.Vector.field(3, dtype=ti.f32, shape=RAY_BATCH)

_stack_origin = ti.Vector.field(3, dtype=ti.f32, shape=(RAY_BATCH, STACK_SIZE))
_stack_direction = ti.Vector.field(3, dtype=ti.f32, shape=(RAY_BATCH, STACK_SIZE))
_stack_weight = ti.field(dtype=ti.f32, shape=(RAY_BATCH, STACK_SIZE))
_stack_depth = ti.field(dtype=ti.i32, shape=(RAY_BATCH, STACK_SIZE))

# Colour of rays that escape the scene
_background = ti.Vector.field(3, dtype=ti.f32, shape=())


def set_background(colour: tuple[float, float, float]) -> None:
    """Set the colour returned for rays that hit nothing."""
    _background[None] = [float(c) for c in colour]


@ti.func
def _push(slot: ti.i32, top: ti.i32, origin: vec3, direction: vec3, weight: ti.f32, depth: ti.i32) -> ti.i32:
    _stack_origin[slot, top] = origin
    _stack_direction[slot, top] = direction
    _stack_weight[slot, top] = weight
    _stack_depth[slot, top] = depth
    return top + 1


@ti.func
def trace_ray(
    slot: ti.i32,
    origin: vec3,
    direction: vec3,
    max_depth: ti.i32,
    shadow_bias: ti.f32,
    use_acceleration: ti.i32,
) -> vec3:
    """Resolve the colour seen along a ray.

    Args:
        slot: Ray slot whose work-stack row this call may use.
        origin: Ray origin.
        direction: Ray direction (any non-zero length).
        max_depth: Remaining recursion depth for the primary ray.
        shadow_bias: Offset along the normal for secondary ray origins.
        use_acceleration: 1 to cull by bounding box.

    Returns:
        The linear RGB colour, unclamped.
    """
    colour = vec3(0.0, 0.0, 0.0)
    top = _push(slot, 0, origin, direction, 1.0, max_depth)

    while top > 0:
        top -= 1
        o = _stack_origin[slot, top]
        d = tm.normalize(_stack_direction[slot, top])
        weight = _stack_weight[slot, top]
        depth = _stack_depth[slot, top]

        record = intersect_scene(o, d, use_acceleration)
        if record.hit == 0:
            colour += weight * _background[None]
        else:
            node = record.node
            point = o + record.t * d
            eye = -d
            normal = node_normal_at(node, point, record.u, record.v)
            inside = 0
            if tm.dot(normal, eye) < 0.0:
                inside = 1
                normal = -normal

            colour += weight * shade_hit(
                node, point, eye, normal, record.u, record.v, shadow_bias, use_acceleration
            )

            material = node_material[node]
            reflective = material_reflective[material]
            transparency = material_transparency[material]

            # Refraction is pushed first so the reflected subtree is resolved first
            if depth > 0 and transparency > 0.0:
                n1 = 1.0
                n2 = material_refractive_index[material]
                if inside == 1:
                    n1 = n2
                    n2 = 1.0
                refracted, ok = refract(d, normal, n1 / n2)
                if ok == 1:
                    under_point = point - normal * shadow_bias
                    top = _push(slot, top, under_point, refracted, weight * transparency, depth - 1)

            if depth > 0 and reflective > 0.0:
                over_point = point + normal * shadow_bias
                top = _push(slot, top, over_point, reflect(d, normal), weight * reflective, depth - 1)

    return colour


@ti.kernel
def _trace_rays(count: ti.i32, max_depth: ti.i32, shadow_bias: ti.f32, use_acceleration: ti.i32):
    """Trace the first ``count`` rays of the batch into ``ray_colour``."""
    for i in range(count):
        ray_colour[i] = trace_ray(i, ray_origin[i], ray_direction[i], max_depth, shadow_bias, use_acceleration)


def check_depth(max_depth: int) -> None:
    """Validate a recursion depth.

    Raises:
        ValueError: If the depth is negative or exceeds MAX_TRACE_DEPTH.
    """
    if not 0 <= max_depth <= MAX_TRACE_DEPTH:
        raise ValueError(f"Recursion depth must be in [0, {MAX_TRACE_DEPTH}], got {max_depth}")


def trace_batch(count: int, max_depth: int, shadow_bias: float, use_acceleration: bool) -> None:
    """Trace the rays already written to the first ``count`` batch slots.

    Raises:
        ValueError: If count exceeds RAY_BATCH or the depth is out of range.
    """
    if count > RAY_BATCH:
        raise ValueError(f"Batch of {count} rays exceeds RAY_BATCH ({RAY_BATCH})")
    check_depth(max_depth)
    _trace_rays(count, max_depth, shadow_bias, int(use_acceleration))


def trace_rays(
    origins: npt.ArrayLike,
    directions: npt.ArrayLike,
    max_depth: int,
    shadow_bias: float,
    use_acceleration: bool,
) -> npt.NDArray[np.float32]:
    """Trace arbitrary rays against the committed world.

    Args:
        origins: Array of shape (N, 3).
        directions: Array of shape (N, 3).
        max_depth: Remaining recursion depth of each ray.
        shadow_bias: Offset along the normal for secondary ray origins.
        use_acceleration: Whether to cull by bounding box.

    Returns:
        Array of shape (N, 3) with the colour of each ray.
    """
    origins = np.asarray(origins, dtype=np.float32).reshape(-1, 3)
    directions = np.asarray(directions, dtype=np.float32).reshape(-1, 3)
    if origins.shape != directions.shape:
        raise ValueError("Every ray needs exactly one origin and one direction")

    colours = np.zeros_like(origins)
    for start in range(0, len(origins), RAY_BATCH):
        stop = min(start + RAY_BATCH, len(origins))
        count = stop - start

        batch_origins = np.zeros((RAY_BATCH, 3), dtype=np.float32)
        batch_directions = np.zeros((RAY_BATCH, 3), dtype=np.float32)
        batch_origins[:count] = origins[start:stop]
        batch_directions[:count] = directions[start:stop]
        ray_origin.from_numpy(batch_origins)
        ray_direction.from_numpy(batch_directions)

        trace_batch(count, max_depth, shadow_bias, use_acceleration)
        colours[start:stop] = ray_colour.to_numpy()[:count]
        logger.debug("Traced rays %d-%d of %d", start, stop, len(origins))

    return colours
