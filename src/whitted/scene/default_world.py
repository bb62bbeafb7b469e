"""The standard two-sphere test scene.

Two concentric spheres at the origin lit by a single white point light:

- Outer sphere: unit radius, colour (0.8, 1.0, 0.6), diffuse 0.7,
  specular 0.2.
- Inner sphere: scaled by 0.5, default material.
- Light: white point light at (-10, 10, -10).

It is small enough to trace in tests yet exercises occlusion, nested
surfaces and the shading model.

Example:
    >>> from src.whitted.scene.default_world import default_world
    >>> world = default_world()
    >>> len(world.objects), len(world.lights)
    (2, 1)
"""

from src.whitted.core.transform import Transform
from src.whitted.geometry.sphere import Sphere
from src.whitted.materials.material import Material
from src.whitted.materials.patterns import Solid
from src.whitted.scene.lights import PointLight
from src.whitted.scene.objects import Object
from src.whitted.scene.world import World, WorldSettings

# Light position used by the default scene
DEFAULT_LIGHT_POSITION = (-10.0, 10.0, -10.0)


def default_world(settings: WorldSettings | None = None) -> World:
    """Create the two-sphere scene.

    Args:
        settings: Render settings; defaults to ``WorldSettings()``.

    Returns:
        A new, uncommitted World.
    """
    outer = Object(
        Sphere(),
        material=Material(Solid((0.8, 1.0, 0.6)), diffuse=0.7, specular=0.2),
    )
    inner = Object(Sphere(), Transform.scaling(0.5, 0.5, 0.5), Material())
    light = PointLight(DEFAULT_LIGHT_POSITION, (1.0, 1.0, 1.0))
    return World([outer, inner], [light], settings)
