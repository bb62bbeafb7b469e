"""Texture-space (u, v) mappings for UV patterns.

Each mapping takes a point in pattern space and returns a ``vec2`` in
[0, 1) x [0, 1]. Shapes pick a native mapping (spherical for spheres,
planar for planes, cylindrical for cylinders and cones, per-face for cubes)
unless a pattern requests one explicitly. Capped cylinders and cones map
each cap to its own unit square.

``CubeFace`` and ``CylinderFace`` name the faces that multi-face patterns
select between.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

vec2 = tm.vec2
vec3 = tm.vec3

TWO_PI = 2.0 * tm.pi


class UVMapping(IntEnum):
    """How a UV pattern turns a 3D point into texture coordinates."""

    AUTO = 0
    SPHERICAL = 1
    PLANAR = 2
    CYLINDRICAL = 3


class CubeFace(IntEnum):
    """Faces of the [-1, 1] cube, named as seen from outside."""

    FRONT = 0  # +z
    BACK = 1  # -z
    LEFT = 2  # -x
    RIGHT = 3  # +x
    UP = 4  # +y
    DOWN = 5  # -y


class CylinderFace(IntEnum):
    """Surfaces of a capped cylinder or cone."""

    SIDES = 0
    TOP = 1
    BOTTOM = 2


@ti.func
def _fract(x: ti.f32) -> ti.f32:
    return x - ti.floor(x)


@ti.func
def _azimuth_u(p: vec3) -> ti.f32:
    """Longitude around the y axis, 0 at -z and increasing counter-clockwise."""
    theta = ti.atan2(p.x, p.z)
    raw_u = theta / TWO_PI
    return 1.0 - (raw_u + 0.5)


@ti.func
def spherical_uv(p: vec3) -> vec2:
    """Map a point on (or around) the unit sphere to longitude/latitude."""
    radius = tm.length(p)
    v = 0.0
    if radius > 0.0:
        phi = ti.acos(ti.max(-1.0, ti.min(1.0, p.y / radius)))
        v = 1.0 - phi / tm.pi
    return vec2(_azimuth_u(p), v)


@ti.func
def planar_uv(p: vec3) -> vec2:
    """Tile the x-z plane with unit squares."""
    return vec2(_fract(p.x), _fract(p.z))


@ti.func
def cylindrical_uv(p: vec3) -> vec2:
    """Wrap around the y axis with v repeating every unit of height."""
    return vec2(_azimuth_u(p), _fract(p.y))


@ti.func
def cube_face(p: vec3) -> ti.i32:
    """The ``CubeFace`` a point belongs to, by its largest absolute coordinate."""
    coord = ti.max(ti.abs(p.x), ti.max(ti.abs(p.y), ti.abs(p.z)))
    face = int(CubeFace.BACK)
    if coord == p.x:
        face = int(CubeFace.RIGHT)
    elif coord == -p.x:
        face = int(CubeFace.LEFT)
    elif coord == p.y:
        face = int(CubeFace.UP)
    elif coord == -p.y:
        face = int(CubeFace.DOWN)
    elif coord == p.z:
        face = int(CubeFace.FRONT)
    return face


@ti.func
def cubic_uv(p: vec3) -> vec2:
    """Map each face of the [-1, 1] cube to its own unit square.

    The face is chosen by ``cube_face``; the four side faces are viewed from
    outside the cube with +y up, the top face with -z up and the bottom face
    with +z up.
    """
    face = cube_face(p)
    u = _fract((1.0 - p.x) / 2.0)
    v = _fract((p.y + 1.0) / 2.0)
    if face == int(CubeFace.RIGHT):
        u = _fract((1.0 - p.z) / 2.0)
    elif face == int(CubeFace.LEFT):
        u = _fract((p.z + 1.0) / 2.0)
    elif face == int(CubeFace.UP):
        u = _fract((p.x + 1.0) / 2.0)
        v = _fract((1.0 - p.z) / 2.0)
    elif face == int(CubeFace.DOWN):
        u = _fract((p.x + 1.0) / 2.0)
        v = _fract((p.z + 1.0) / 2.0)
    elif face == int(CubeFace.FRONT):
        u = _fract((p.x + 1.0) / 2.0)
    return vec2(u, v)


@ti.func
def cap_uv(p: vec3, face: ti.i32) -> vec2:
    """Map a unit-radius cap onto the unit square.

    The top cap is viewed from above with -z up, the bottom cap from below
    with +z up.
    """
    v = (p.z + 1.0) / 2.0
    if face == int(CylinderFace.TOP):
        v = (1.0 - p.z) / 2.0
    return vec2((p.x + 1.0) / 2.0, v)


@ti.func
def cylinder_face_uv(p: vec3, face: ti.i32) -> vec2:
    """Cylindrical coordinates on the sides, ``cap_uv`` on the caps."""
    uv = cylindrical_uv(p)
    if face != int(CylinderFace.SIDES):
        uv = cap_uv(p, face)
    return uv
