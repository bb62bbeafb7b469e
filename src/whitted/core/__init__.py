"""Core rendering module.

This module contains the fundamental building blocks of the tracer:

Components:
    errors: Exception taxonomy for invalid scenes and rays
    vectors: Python-side points and vectors
    transform: 4x4 affine transforms and their Taichi helpers
    ray: Ray data structures, reflection and refraction
    shading: Phong shading with shadow tests
    tracer: Recursive reflection/refraction over a bounded work stack
    canvas: Rendered image buffer
    renderer: Camera ray generation and sample accumulation

All compute-intensive operations use Taichi kernels.
"""

from .errors import ConstructionError, InvalidRay, RayTracerError, SingularMatrix
from .ray import Ray, Ray3D, make_ray, ray_at, reflect, refract
from .transform import Transform
from .vectors import ORIGIN, Point3D, Vector3D

# Note: shading, tracer and renderer own Taichi fields and are NOT imported
# here; import them after ti.init(), e.g. from src.whitted.core.renderer.

__all__ = [
    "RayTracerError",
    "SingularMatrix",
    "ConstructionError",
    "InvalidRay",
    "Point3D",
    "Vector3D",
    "ORIGIN",
    "Transform",
    "Ray3D",
    "Ray",
    "make_ray",
    "ray_at",
    "reflect",
    "refract",
]
