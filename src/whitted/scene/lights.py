"""Point and area lights.

Every light is reduced to a list of weighted point samples before upload:

- ``PointLight``: one sample at its position with weight 1.
- ``AreaLight``: a ``u_steps x v_steps`` grid of virtual point lights spread
  over the parallelogram spanned by two edge vectors from a corner. Each
  sample has weight ``1 / (u_steps * v_steps)``. Without a seed every sample
  sits at the centre of its cell; with a seed each sample is jittered inside
  its cell using ``numpy.random.default_rng(seed)``, drawn once at
  construction so that renders are reproducible.

Shading sums each sample's contribution times its weight and divides by the
light's total weight, so fractional occlusion of an area light produces soft
shadow edges. A 1x1 area light is exactly a point light at the centre of
its single cell.

Example:
    >>> from src.whitted.scene.lights import AreaLight
    >>> light = AreaLight((-1, 2, 4), (2, 0, 0), (0, 0, 1), 4, 2, (1, 1, 1))
    >>> len(light.samples())
    8
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import taichi as ti

from src.whitted.core.vectors import Point3D, Vector3D, as_point, as_vector

Colour = tuple[float, float, float]


@dataclass(frozen=True)
class LightSample:
    """A single virtual point light.

    Attributes:
        position: World-space position.
        colour: Light intensity per channel.
        weight: Contribution weight within the owning light.
    """

    position: Point3D
    colour: Colour
    weight: float


@dataclass(frozen=True)
class PointLight:
    """A point light source.

    Attributes:
        position: World-space position.
        colour: Light intensity per channel.
    """

    position: Point3D
    colour: Colour = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_point(self.position))

    def samples(self) -> list[LightSample]:
        return [LightSample(self.position, tuple(self.colour), 1.0)]


@dataclass(frozen=True)
class AreaLight:
    """A rectangular light sampled on a regular (optionally jittered) grid.

    Attributes:
        corner: One corner of the light.
        u: Edge vector spanning the u direction.
        v: Edge vector spanning the v direction.
        u_steps: Number of samples along u.
        v_steps: Number of samples along v.
        colour: Total light intensity per channel.
        seed: Seed for jittered sampling; None places samples at cell centres.

    Raises:
        ValueError: If either step count is less than 1.
    """

    corner: Point3D
    u: Vector3D
    v: Vector3D
    u_steps: int
    v_steps: int
    colour: Colour = (1.0, 1.0, 1.0)
    seed: int | None = None
    _samples: tuple[LightSample, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.u_steps < 1 or self.v_steps < 1:
            raise ValueError(
                f"Area light needs at least one sample per axis, got {self.u_steps}x{self.v_steps}"
            )
        object.__setattr__(self, "corner", as_point(self.corner))
        object.__setattr__(self, "u", as_vector(self.u))
        object.__setattr__(self, "v", as_vector(self.v))
        object.__setattr__(self, "_samples", tuple(self._build_samples()))

    def _build_samples(self) -> list[LightSample]:
        cell_u = self.u / self.u_steps
        cell_v = self.v / self.v_steps
        weight = 1.0 / (self.u_steps * self.v_steps)
        rng = np.random.default_rng(self.seed) if self.seed is not None else None

        samples = []
        for i in range(self.u_steps):
            for j in range(self.v_steps):
                if rng is None:
                    ju, jv = 0.5, 0.5
                else:
                    ju, jv = (float(x) for x in rng.random(2))
                position = self.corner + cell_u * (i + ju) + cell_v * (j + jv)
                samples.append(LightSample(position, tuple(self.colour), weight))
        return samples

    @property
    def position(self) -> Point3D:
        """Centre of the light."""
        return self.corner + self.u * 0.5 + self.v * 0.5

    def samples(self) -> list[LightSample]:
        return list(self._samples)


Light = PointLight | AreaLight


# =============================================================================
# Taichi Fields for Light Storage
# =============================================================================

# Maximum number of lights and total light samples in a committed scene
MAX_LIGHTS = 64
MAX_LIGHT_SAMPLES = 4096

light_first_sample = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_sample_count = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_sample_position = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHT_SAMPLES)
light_sample_colour = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHT_SAMPLES)
light_sample_weight = ti.field(dtype=ti.f32, shape=MAX_LIGHT_SAMPLES)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Remove all lights.

    Resets the light count to zero; field data is overwritten on the next
    upload.
    """
    num_lights[None] = 0


def upload_lights(lights: list[Light]) -> int:
    """Expand lights into samples and upload them to Taichi fields.

    Args:
        lights: The lights of the scene.

    Returns:
        The total number of uploaded light samples.

    Raises:
        RuntimeError: If the maximum number of lights or samples is exceeded.
    """
    if len(lights) > MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")

    first = np.zeros(MAX_LIGHTS, dtype=np.int32)
    counts = np.zeros(MAX_LIGHTS, dtype=np.int32)
    positions = np.zeros((MAX_LIGHT_SAMPLES, 3), dtype=np.float32)
    colours = np.zeros((MAX_LIGHT_SAMPLES, 3), dtype=np.float32)
    weights = np.zeros(MAX_LIGHT_SAMPLES, dtype=np.float32)

    total = 0
    for index, light in enumerate(lights):
        samples = light.samples()
        if total + len(samples) > MAX_LIGHT_SAMPLES:
            raise RuntimeError(f"Maximum number of light samples ({MAX_LIGHT_SAMPLES}) exceeded")
        first[index] = total
        counts[index] = len(samples)
        for sample in samples:
            positions[total] = sample.position.to_tuple()
            colours[total] = sample.colour
            weights[total] = sample.weight
            total += 1

    light_first_sample.from_numpy(first)
    light_sample_count.from_numpy(counts)
    light_sample_position.from_numpy(positions)
    light_sample_colour.from_numpy(colours)
    light_sample_weight.from_numpy(weights)
    num_lights[None] = len(lights)
    return total
