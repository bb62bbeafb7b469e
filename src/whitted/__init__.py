"""Python implementation of the Taichi-based Whitted ray tracer.

This package provides CPU-parallel recursive ray tracing using Taichi, with
support for:
- Affine geometry with type-safe points, vectors and invertible transforms
- Spheres, planes, cubes, cylinders, cones, flat and smooth triangles, groups
- Bounding-volume culling over a flattened object arena
- Procedural and UV image-mapped patterns
- Phong shading with point and area lights and hard/soft shadows
- Recursive reflection and refraction with a bounded work stack
- Single-sample and grid supersampled rendering

Subpackages:
    core: Vectors, transforms, rays, shading, tracing and the render loop
    geometry: Shape primitives, bounding boxes and intersection algorithms
    materials: Materials and pattern evaluation
    scene: Objects, lights, the world arena and default scenes
    camera: Camera model and sampling strategies
    preview: Tone mapping and image export
"""

__version__ = "0.1.0"
