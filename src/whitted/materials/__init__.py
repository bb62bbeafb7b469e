"""Materials module for surface appearance.

Components:
    patterns: Solid, striped, gradient, ring, checker, UV-mapped and
        multi-face (cube and capped cylinder) patterns
    material: Phong material coefficients and the material table

Both modules own Taichi fields, so they are not imported here; import them
after ti.init(), e.g. ``from src.whitted.materials.material import Material``.
"""
