"""Scene module for objects, lights and the committed world.

Components:
    objects: Objects (shape + transform + material), groups and CSG
    lights: Point and area lights
    intersection: Flattened object arena and scene traversal
    probes: Single-point query kernels
    world: World assembly, commit and queries
    default_world: The standard two-sphere test scene

These modules own Taichi fields and are not imported here; import them
after ti.init(), e.g. ``from src.whitted.scene.world import World``.
"""
