"""Phong surface materials.

A Material pairs a colour pattern with the scalar coefficients of the local
illumination model (ambient, diffuse, specular, shininess) and the recursive
transport coefficients (reflective, transparency, refractive index). The
``casts_shadow`` flag lets a surface be visible without occluding lights,
which is useful for glass panes and light fixtures.

Materials are uploaded into Taichi fields (Structure of Arrays) when a world
is committed; kernels look up coefficients by material id.

Example:
    >>> from src.whitted.materials.material import Material
    >>> from src.whitted.materials.patterns import Solid
    >>> glass = Material(Solid((0.1, 0.1, 0.1)), transparency=0.9, refractive_index=1.5)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
import taichi as ti

from src.whitted.materials.patterns import Pattern, Solid

# Refractive indices of common media
VACUUM = 1.0
AIR = 1.00029
WATER = 1.333
GLASS = 1.52
DIAMOND = 2.417


@dataclass
class Material:
    """Surface appearance of an object.

    Attributes:
        pattern: Colour source evaluated at each shaded point.
        ambient: Fraction of light colour reflected regardless of geometry.
        diffuse: Lambertian reflectance coefficient.
        specular: Phong highlight coefficient.
        shininess: Phong exponent; larger values give tighter highlights.
        reflective: Weight of the mirror-reflected colour (0 disables).
        transparency: Weight of the refracted colour (0 disables).
        refractive_index: Index of refraction of the medium inside the surface.
        casts_shadow: Whether the surface occludes light samples.

    Raises:
        ValueError: If a coefficient is negative or not finite, or the
            refractive index is not positive.
    """

    pattern: Pattern = field(default_factory=Solid)
    ambient: float = 0.1
    diffuse: float = 0.9
    specular: float = 0.9
    shininess: float = 200.0
    reflective: float = 0.0
    transparency: float = 0.0
    refractive_index: float = VACUUM
    casts_shadow: bool = True

    def __post_init__(self) -> None:
        for name in (
            "ambient",
            "diffuse",
            "specular",
            "shininess",
            "reflective",
            "transparency",
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"Material {name} must be a non-negative number, got {value}")
        if not math.isfinite(self.refractive_index) or self.refractive_index <= 0.0:
            raise ValueError(
                f"Material refractive_index must be positive, got {self.refractive_index}"
            )


# =============================================================================
# Taichi Fields for Material Storage
# =============================================================================

# Maximum number of distinct materials in a committed scene
MAX_MATERIALS = 1024

material_pattern = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_ambient = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_diffuse = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_specular = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_shininess = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_reflective = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_transparency = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_refractive_index = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_casts_shadow = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Remove all materials.

    Resets the material count to zero; field data is overwritten on the
    next upload.
    """
    num_materials[None] = 0


def upload_materials(materials: list[Material], pattern_ids: list[int]) -> None:
    """Upload materials into Taichi fields.

    Material ids are positions in ``materials``.

    Args:
        materials: Materials to upload.
        pattern_ids: Pattern id of each material's pattern, in the same order.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the two lists differ in length.
    """
    count = len(materials)
    if count > MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    if len(pattern_ids) != count:
        raise ValueError("Every material needs exactly one pattern id")

    def column(values, dtype):
        array = np.zeros(MAX_MATERIALS, dtype=dtype)
        array[:count] = values
        return array

    material_pattern.from_numpy(column(pattern_ids, np.int32))
    material_ambient.from_numpy(column([m.ambient for m in materials], np.float32))
    material_diffuse.from_numpy(column([m.diffuse for m in materials], np.float32))
    material_specular.from_numpy(column([m.specular for m in materials], np.float32))
    material_shininess.from_numpy(column([m.shininess for m in materials], np.float32))
    material_reflective.from_numpy(column([m.reflective for m in materials], np.float32))
    material_transparency.from_numpy(column([m.transparency for m in materials], np.float32))
    material_refractive_index.from_numpy(
        column([m.refractive_index for m in materials], np.float32)
    )
    material_casts_shadow.from_numpy(column([int(m.casts_shadow) for m in materials], np.int32))
    num_materials[None] = count


def get_material_count() -> int:
    """Get the number of uploaded materials."""
    return int(num_materials[None])
