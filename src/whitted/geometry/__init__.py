"""Geometry module for shape primitives and bounding volumes.

Components:
    shapes: Shape base class, kind tags and the local hit list
    bounds: Axis-aligned bounding boxes and the ray/box slab test
    sphere, plane, cube, cylinder, cone, triangle: primitives
    uv: Texture coordinate mappings

Every primitive is defined in its own local space. Intersection and normal
routines are Taichi functions (@ti.func) taking the ray already carried
into that space; the scene arena dispatches to them by ``ShapeKind``.
"""

from .bounds import BoundingBox
from .cone import Cone
from .cube import Cube
from .cylinder import Cylinder
from .plane import Plane
from .shapes import PackedShape, Shape, ShapeKind
from .sphere import Sphere
from .triangle import SmoothTriangle, Triangle
from .uv import CubeFace, CylinderFace, UVMapping

__all__ = [
    "Shape",
    "ShapeKind",
    "PackedShape",
    "BoundingBox",
    "Sphere",
    "Plane",
    "Cube",
    "Cylinder",
    "Cone",
    "Triangle",
    "SmoothTriangle",
    "UVMapping",
    "CubeFace",
    "CylinderFace",
]
