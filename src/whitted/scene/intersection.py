"""Scene-level intersection over a flattened object arena.

A committed world is stored as a preorder array of nodes in Taichi fields
(Structure of Arrays). Every object becomes one node; a group node is
followed immediately by all of its descendants, and its ``skip`` index
points just past that subtree. Each node stores the composed world-to-local
inverse transform, the material id, the packed shape parameters and a padded
world-space bounding box.

Traversal is a stackless loop over the arena. With acceleration enabled, a
node whose box the ray misses is skipped together with its entire subtree by
jumping to ``skip``. Culling only removes work: a box miss proves that no
descendant can be hit, so results are identical with culling on or off.

Three queries share the traversal:

- ``intersect_scene``: the closest hit with t >= 0 (first node in arena
  order wins ties).
- ``intersect_scene_any``: whether any shadow-casting surface lies strictly
  between a point and a light (0 < t < distance).
- ``collect_intersections``: every intersection of a ray, including negative
  distances, as a sorted Python ``Intersections`` list.

A CSG node is a composite like a group, with its operation in its params.
Every primitive records the nearest enclosing CSG and which operand it sits
under, so each candidate hit is filtered by walking outward through those
CSG nodes and asking whether the hit lies inside the other operand.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.scene.world import World
    >>> from src.whitted.scene.intersection import intersect_scene
    >>> # World.commit() uploads the arena; use intersect_scene in a kernel
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import taichi as ti
import taichi.math as tm

from src.whitted.core.transform import Transform, transform_normal, transform_point, transform_vector
from src.whitted.geometry.bounds import BoundingBox, ray_box_overlap
from src.whitted.geometry.cone import intersect_cone, normal_cone
from src.whitted.geometry.cube import intersect_cube, normal_cube
from src.whitted.geometry.cylinder import intersect_cylinder, normal_cylinder
from src.whitted.geometry.plane import intersect_plane, normal_plane
from src.whitted.geometry.shapes import (
    EPSILON,
    MAX_LOCAL_HITS,
    LocalHits,
    PackedShape,
    ShapeKind,
    no_hits,
)
from src.whitted.geometry.sphere import intersect_sphere, normal_sphere
from src.whitted.geometry.triangle import intersect_triangle, normal_smooth_triangle
from src.whitted.geometry.uv import (
    CylinderFace,
    UVMapping,
    cubic_uv,
    cylinder_face_uv,
    cylindrical_uv,
    planar_uv,
    spherical_uv,
)
from src.whitted.materials.material import material_casts_shadow
from src.whitted.scene.objects import CsgOperation, Object

if TYPE_CHECKING:
    from src.whitted.core.ray import Ray3D

vec2 = tm.vec2
vec3 = tm.vec3
vec4 = tm.vec4
ivec3 = tm.ivec3

# Largest parametric distance considered by any query
T_MAX = 1e10

# Stand-in for infinite coordinates in float32 fields
FIELD_INFINITY = 1e30


@ti.dataclass
class SceneHitRecord:
    """Closest intersection of a ray with the scene.

    Attributes:
        hit: 1 if the ray hit a surface at t >= 0, 0 on a miss.
        t: Parametric distance of the hit. Only valid if hit == 1.
        node: Arena index of the hit primitive. Only valid if hit == 1.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).
    """

    hit: ti.i32
    t: ti.f32
    node: ti.i32
    u: ti.f32
    v: ti.f32


# =============================================================================
# Arena Storage
# =============================================================================

# Maximum number of nodes (objects and groups) in a committed scene
MAX_NODES = 16384

# Deepest nesting allowed below the outermost CSG node of a subtree
MAX_CSG_NESTING = 30

node_kind = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_skip = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_material = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_inverse = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_NODES)
node_bounded = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
# Cylinder/cone: (minimum, maximum, closed, unused)
node_params = ti.Vector.field(4, dtype=ti.f32, shape=MAX_NODES)
# Triangles: first vertex, the two edges from it, and the three vertex normals
node_p1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_e1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_e2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_n1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_n2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_n3 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
# Tree links: parent node, depth below the top level, nearest enclosing CSG
# node (-1 if none) and which operand of that CSG the node belongs to
node_parent = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_depth = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_csg = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_csg_side = ti.field(dtype=ti.i32, shape=MAX_NODES)
num_nodes = ti.field(dtype=ti.i32, shape=())


@dataclass
class ArenaNode:
    """One flattened scene node, ready for upload.

    Attributes:
        kind: Shape kind tag.
        skip: Arena index just past this node's subtree.
        material: Material id (unused for groups).
        inverse: World-to-local transform.
        box: Padded world-space bounding box, or None if unbounded.
        shape: Packed shape parameters in local space.
        source: The scene object this node was built from.
        parent: Arena index of the enclosing group or CSG, or -1.
        depth: Nesting depth (0 for top-level objects).
        csg: Arena index of the nearest enclosing CSG node, or -1.
        csg_side: 0 if the node lies in that CSG's left operand, 1 if right.
    """

    kind: ShapeKind
    skip: int
    material: int
    inverse: Transform
    box: BoundingBox | None
    shape: PackedShape
    source: Object
    parent: int = -1
    depth: int = 0
    csg: int = -1
    csg_side: int = 0


def clear_arena() -> None:
    """Remove all nodes from the arena.

    Resets the node count to zero; field data is overwritten on the next
    upload.
    """
    num_nodes[None] = 0


def upload_arena(nodes: list[ArenaNode]) -> None:
    """Upload flattened nodes to the arena fields.

    Args:
        nodes: Nodes in preorder with valid skip indices.

    Raises:
        RuntimeError: If the maximum number of nodes is exceeded, or CSG
            operands are nested too deeply.
    """
    count = len(nodes)
    if count > MAX_NODES:
        raise RuntimeError(f"Maximum number of nodes ({MAX_NODES}) exceeded")
    _check_csg_nesting(nodes)

    kinds = np.zeros(MAX_NODES, dtype=np.int32)
    skips = np.zeros(MAX_NODES, dtype=np.int32)
    materials = np.zeros(MAX_NODES, dtype=np.int32)
    inverses = np.zeros((MAX_NODES, 4, 4), dtype=np.float32)
    bounded = np.zeros(MAX_NODES, dtype=np.int32)
    box_min = np.zeros((MAX_NODES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_NODES, 3), dtype=np.float32)
    params = np.zeros((MAX_NODES, 4), dtype=np.float32)
    p1 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    e1 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    e2 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    n1 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    n2 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    n3 = np.zeros((MAX_NODES, 3), dtype=np.float32)
    parents = np.full(MAX_NODES, -1, dtype=np.int32)
    depths = np.zeros(MAX_NODES, dtype=np.int32)
    csgs = np.full(MAX_NODES, -1, dtype=np.int32)
    csg_sides = np.zeros(MAX_NODES, dtype=np.int32)

    for i, node in enumerate(nodes):
        kinds[i] = int(node.kind)
        skips[i] = node.skip
        materials[i] = node.material
        inverses[i] = node.inverse.to_numpy()
        if node.box is not None:
            bounded[i] = 1
            box_min[i] = node.box.minimum.to_tuple()
            box_max[i] = node.box.maximum.to_tuple()
        params[i] = node.shape.params
        if node.shape.vertices is not None:
            a, b, c = node.shape.vertices
            p1[i] = a.to_tuple()
            e1[i] = (b - a).to_tuple()
            e2[i] = (c - a).to_tuple()
        if node.shape.normals is not None:
            n1[i], n2[i], n3[i] = (n.to_tuple() for n in node.shape.normals)
        parents[i] = node.parent
        depths[i] = node.depth
        csgs[i] = node.csg
        csg_sides[i] = node.csg_side

    np.clip(params, -FIELD_INFINITY, FIELD_INFINITY, out=params)

    node_kind.from_numpy(kinds)
    node_skip.from_numpy(skips)
    node_material.from_numpy(materials)
    node_inverse.from_numpy(inverses)
    node_bounded.from_numpy(bounded)
    node_box_min.from_numpy(box_min)
    node_box_max.from_numpy(box_max)
    node_params.from_numpy(params)
    node_p1.from_numpy(p1)
    node_e1.from_numpy(e1)
    node_e2.from_numpy(e2)
    node_n1.from_numpy(n1)
    node_n2.from_numpy(n2)
    node_n3.from_numpy(n3)
    node_parent.from_numpy(parents)
    node_depth.from_numpy(depths)
    node_csg.from_numpy(csgs)
    node_csg_side.from_numpy(csg_sides)
    num_nodes[None] = count


def _check_csg_nesting(nodes: list[ArenaNode]) -> None:
    for node in nodes:
        if node.csg < 0:
            continue
        outer = node.csg
        while nodes[outer].csg >= 0:
            outer = nodes[outer].csg
        if node.depth - nodes[outer].depth > MAX_CSG_NESTING:
            raise RuntimeError(f"Maximum CSG nesting depth ({MAX_CSG_NESTING}) exceeded")


def get_node_count() -> int:
    """Get the number of nodes in the arena."""
    return int(num_nodes[None])


# =============================================================================
# Per-Node Dispatch
# =============================================================================


@ti.func
def intersect_node(node: ti.i32, ray_origin: vec3, ray_direction: vec3) -> LocalHits:
    """Intersect a world-space ray with one primitive node.

    The ray is carried into the node's local space with its stored inverse
    transform; parametric distances are unchanged by the transform.

    Args:
        node: Arena index of a primitive (not a group).
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction.

    Returns:
        The node's local hits.
    """
    inverse = node_inverse[node]
    origin = transform_point(inverse, ray_origin)
    direction = transform_vector(inverse, ray_direction)
    kind = node_kind[node]
    params = node_params[node]

    hits = no_hits()
    if kind == int(ShapeKind.SPHERE):
        hits = intersect_sphere(origin, direction)
    elif kind == int(ShapeKind.PLANE):
        hits = intersect_plane(origin, direction)
    elif kind == int(ShapeKind.CUBE):
        hits = intersect_cube(origin, direction)
    elif kind == int(ShapeKind.CYLINDER):
        hits = intersect_cylinder(origin, direction, params[0], params[1], ti.cast(params[2], ti.i32))
    elif kind == int(ShapeKind.CONE):
        hits = intersect_cone(origin, direction, params[0], params[1], ti.cast(params[2], ti.i32))
    elif kind == int(ShapeKind.TRIANGLE) or kind == int(ShapeKind.SMOOTH_TRIANGLE):
        hits = intersect_triangle(origin, direction, node_p1[node], node_e1[node], node_e2[node])
    return hits


@ti.func
def node_normal_at(node: ti.i32, world_point: vec3, u: ti.f32, v: ti.f32) -> vec3:
    """Unit world-space surface normal of a primitive node.

    Args:
        node: Arena index of the primitive.
        world_point: Point on the surface in world space.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).

    Returns:
        The outward normal, transformed by the inverse-transpose and
        normalized.
    """
    inverse = node_inverse[node]
    local_point = transform_point(inverse, world_point)
    kind = node_kind[node]
    params = node_params[node]

    local_normal = vec3(0.0, 1.0, 0.0)
    if kind == int(ShapeKind.SPHERE):
        local_normal = normal_sphere(local_point)
    elif kind == int(ShapeKind.PLANE):
        local_normal = normal_plane(local_point)
    elif kind == int(ShapeKind.CUBE):
        local_normal = normal_cube(local_point)
    elif kind == int(ShapeKind.CYLINDER):
        local_normal = normal_cylinder(local_point, params[0], params[1])
    elif kind == int(ShapeKind.CONE):
        local_normal = normal_cone(local_point, params[0], params[1])
    elif kind == int(ShapeKind.TRIANGLE) or kind == int(ShapeKind.SMOOTH_TRIANGLE):
        local_normal = normal_smooth_triangle(u, v, node_n1[node], node_n2[node], node_n3[node])

    world_normal = transform_normal(inverse, local_normal)
    length = tm.length(world_normal)
    if length > 0.0:
        world_normal = world_normal / length
    return world_normal


@ti.func
def node_uv_at(node: ti.i32, point: vec3, u: ti.f32, v: ti.f32, mapping: ti.i32) -> vec2:
    """Texture coordinates of a pattern-space point on a primitive node.

    Args:
        node: Arena index of the primitive.
        point: The point in pattern space.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).
        mapping: ``UVMapping`` value; AUTO picks the shape's native mapping.

    Returns:
        The (u, v) texture coordinates.
    """
    kind = node_kind[node]
    params = node_params[node]

    uv = vec2(u, v)
    if mapping == int(UVMapping.SPHERICAL):
        uv = spherical_uv(point)
    elif mapping == int(UVMapping.PLANAR):
        uv = planar_uv(point)
    elif mapping == int(UVMapping.CYLINDRICAL):
        uv = cylindrical_uv(point)
    elif kind == int(ShapeKind.SPHERE):
        uv = spherical_uv(point)
    elif kind == int(ShapeKind.PLANE):
        uv = planar_uv(point)
    elif kind == int(ShapeKind.CUBE):
        uv = cubic_uv(point)
    elif kind == int(ShapeKind.CYLINDER) or kind == int(ShapeKind.CONE):
        uv = cylinder_face_uv(point, node_cylinder_face(node, point))
    return uv


@ti.func
def node_cylinder_face(node: ti.i32, point: vec3) -> ti.i32:
    """The ``CylinderFace`` of a point on a primitive node.

    Only closed cylinders and cones have caps; every other point, and every
    other shape, counts as the sides.
    """
    kind = node_kind[node]
    params = node_params[node]
    face = int(CylinderFace.SIDES)
    if kind == int(ShapeKind.CYLINDER) or kind == int(ShapeKind.CONE):
        if params[2] > 0.5:
            if point.y >= params[1] - EPSILON:
                face = int(CylinderFace.TOP)
            elif point.y <= params[0] + EPSILON:
                face = int(CylinderFace.BOTTOM)
    return face


# =============================================================================
# Scene Traversal
# =============================================================================


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(hit=0, t=0.0, node=-1, u=0.0, v=0.0)


@ti.func
def _culled(node: ti.i32, ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Whether the node's bounding box proves the ray cannot hit its subtree."""
    culled = 0
    if node_bounded[node] == 1:
        if ray_box_overlap(ray_origin, ray_direction, node_box_min[node], node_box_max[node], t_min, t_max) == 0:
            culled = 1
    return culled


@ti.func
def is_primitive(node: ti.i32) -> ti.i32:
    kind = node_kind[node]
    return kind != int(ShapeKind.GROUP) and kind != int(ShapeKind.CSG)


# =============================================================================
# CSG Filtering
# =============================================================================


@ti.func
def _crossing_parity(node: ti.i32, ray_origin: vec3, ray_direction: vec3, t: ti.f32) -> ti.i32:
    """1 if the ray crosses a primitive's surface an odd number of times before t."""
    hits = intersect_node(node, ray_origin, ray_direction)
    parity = 0
    for s in ti.static(range(MAX_LOCAL_HITS)):
        if s < hits.count and hits.ts[s] < t:
            parity = 1 - parity
    return parity


@ti.func
def _combine(operation: ti.i32, left: ti.i32, right: ti.i32) -> ti.i32:
    inside = left & (1 - right)
    if operation == int(CsgOperation.UNION):
        inside = left | right
    elif operation == int(CsgOperation.INTERSECTION):
        inside = left & right
    return inside


@ti.func
def _deliver(state: ivec3, frame: ti.i32, depth: ti.i32, inside: ti.i32) -> ivec3:
    """Fold one child's inside flag into the open composite node ``frame``.

    ``state`` holds three bit masks indexed by relative depth: the running
    value of each open node, whether a CSG has received its left operand,
    and that left operand's value.
    """
    value = state[0]
    has_left = state[1]
    left = state[2]
    bit = 1 << depth
    if node_kind[frame] == int(ShapeKind.CSG):
        if (has_left & bit) == 0:
            has_left = has_left | bit
            left = left | (inside << depth)
        else:
            operation = ti.cast(node_params[frame][0], ti.i32)
            combined = _combine(operation, (left >> depth) & 1, inside)
            value = (value & ~bit) | (combined << depth)
    else:
        value = value ^ (inside << depth)
    return ivec3(value, has_left, left)


@ti.func
def inside_subtree(
    root: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t: ti.f32,
    use_acceleration: ti.i32,
) -> ti.i32:
    """Whether the point at ``t`` along the ray lies inside a subtree's solid.

    A primitive contains the point when the ray crosses its surface an odd
    number of times before ``t``; a group when an odd number of its children
    do; a CSG node when its operation combines its operands' answers to
    true. The subtree is walked in preorder, and composite nodes are folded
    bottom-up through bit masks indexed by depth below ``root``.

    Args:
        root: Arena index of the subtree root.
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction.
        t: Parametric distance of the point.
        use_acceleration: 1 to skip subtrees whose box the ray misses before t.

    Returns:
        1 if the point is inside, 0 otherwise.
    """
    base = node_depth[root]
    end = node_skip[root]
    state = ivec3(0, 0, 0)
    result = 0
    current = -1
    i = root
    while i < end or current != -1:
        if current != -1 and i >= node_skip[current]:
            # Subtree of the innermost open node is complete
            depth = node_depth[current] - base
            inside = (state[0] >> depth) & 1
            if current == root:
                result = inside
                current = -1
            else:
                parent = node_parent[current]
                state = _deliver(state, parent, node_depth[parent] - base, inside)
                current = parent
        else:
            inside = 0
            next_i = i + 1
            culled = 0
            if use_acceleration == 1:
                culled = _culled(i, ray_origin, ray_direction, -T_MAX, t)
            if culled == 1:
                next_i = node_skip[i]
            elif is_primitive(i) == 1:
                inside = _crossing_parity(i, ray_origin, ray_direction, t)
            else:
                depth = node_depth[i] - base
                mask = ~(1 << depth)
                state = ivec3(state[0] & mask, state[1] & mask, state[2] & mask)
                current = i

            if current != i:
                if i == root:
                    result = inside
                else:
                    frame = node_parent[i]
                    state = _deliver(state, frame, node_depth[frame] - base, inside)
            i = next_i
    return result


@ti.func
def csg_keeps(
    node: ti.i32,
    t: ti.f32,
    ray_origin: vec3,
    ray_direction: vec3,
    use_acceleration: ti.i32,
) -> ti.i32:
    """Whether every CSG enclosing a primitive keeps its hit at ``t``.

    Starting from the nearest enclosing CSG, the hit is tested against the
    other operand's solid and the operation's rule, then against each
    further enclosing CSG in turn.

    Returns:
        1 if the hit is part of the final surface, 0 if it is filtered out.
    """
    keep = 1
    csg = node_csg[node]
    side = node_csg_side[node]
    while csg != -1 and keep == 1:
        left_root = csg + 1
        other = node_skip[left_root]
        if side == 1:
            other = left_root
        inside_other = inside_subtree(other, ray_origin, ray_direction, t, use_acceleration)

        operation = ti.cast(node_params[csg][0], ti.i32)
        if operation == int(CsgOperation.UNION):
            keep = 1 - inside_other
        elif operation == int(CsgOperation.INTERSECTION):
            keep = inside_other
        elif side == 0:
            keep = 1 - inside_other
        else:
            keep = inside_other

        side = node_csg_side[csg]
        csg = node_csg[csg]
    return keep


@ti.func
def first_kept_hit(
    node: ti.i32,
    hits: LocalHits,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    exclusive: ti.i32,
    use_acceleration: ti.i32,
) -> ti.f32:
    """Smallest of a primitive's hits in range that survives CSG filtering.

    Args:
        node: Arena index of the primitive that produced ``hits``.
        hits: The primitive's local hits.
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction.
        t_min: Lower end of the range.
        t_max: Upper end of the range (exclusive).
        exclusive: 1 to exclude ``t_min`` itself.
        use_acceleration: 1 to cull while testing CSG operands.

    Returns:
        The hit distance, or ``t_max`` if no hit qualifies.
    """
    result = t_max
    lower = t_min
    strict = exclusive
    searching = 1
    while searching == 1:
        candidate = t_max
        for s in ti.static(range(MAX_LOCAL_HITS)):
            if s < hits.count:
                t = hits.ts[s]
                if t < candidate:
                    if t > lower or (strict == 0 and t == lower):
                        candidate = t
        if candidate >= t_max:
            searching = 0
        else:
            keep = 1
            if node_csg[node] != -1:
                keep = csg_keeps(node, candidate, ray_origin, ray_direction, use_acceleration)
            if keep == 1:
                result = candidate
                searching = 0
            else:
                lower = candidate
                strict = 1
    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    use_acceleration: ti.i32,
) -> SceneHitRecord:
    """Find the closest intersection with t >= 0.

    Args:
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction (any non-zero length).
        use_acceleration: 1 to cull subtrees by bounding box.

    Returns:
        A SceneHitRecord for the visible hit, or a miss record.
    """
    closest_t = T_MAX
    result = _make_miss_record()

    n = num_nodes[None]
    i = 0
    while i < n:
        next_i = i + 1
        if use_acceleration == 1 and _culled(i, ray_origin, ray_direction, 0.0, closest_t) == 1:
            next_i = node_skip[i]
        elif is_primitive(i) == 1:
            hits = intersect_node(i, ray_origin, ray_direction)
            t = first_kept_hit(i, hits, ray_origin, ray_direction, 0.0, closest_t, 0, use_acceleration)
            if t < closest_t:
                closest_t = t
                result = SceneHitRecord(hit=1, t=t, node=i, u=hits.u, v=hits.v)
        i = next_i

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_max: ti.f32,
    use_acceleration: ti.i32,
) -> ti.i32:
    """Test whether a shadow-casting surface lies on the open segment (0, t_max).

    Surfaces whose material has ``casts_shadow`` disabled are ignored.
    Traversal stops at the first blocking hit.

    Args:
        ray_origin: World-space origin of the shadow ray.
        ray_direction: Direction toward the light.
        t_max: Parametric distance of the light along the ray.
        use_acceleration: 1 to cull subtrees by bounding box.

    Returns:
        1 if the segment is blocked, 0 otherwise.
    """
    blocked = 0

    n = num_nodes[None]
    i = 0
    while i < n:
        next_i = i + 1
        if use_acceleration == 1 and _culled(i, ray_origin, ray_direction, 0.0, t_max) == 1:
            next_i = node_skip[i]
        elif is_primitive(i) == 1 and material_casts_shadow[node_material[i]] == 1:
            hits = intersect_node(i, ray_origin, ray_direction)
            if first_kept_hit(i, hits, ray_origin, ray_direction, 0.0, t_max, 1, use_acceleration) < t_max:
                blocked = 1
                next_i = n
        i = next_i

    return blocked


# =============================================================================
# Intersection Lists (Python API)
# =============================================================================

# Maximum number of intersections collected for a single ray
MAX_COLLECTED = 4096

collected_t = ti.field(dtype=ti.f32, shape=MAX_COLLECTED)
collected_node = ti.field(dtype=ti.i32, shape=MAX_COLLECTED)
collected_u = ti.field(dtype=ti.f32, shape=MAX_COLLECTED)
collected_v = ti.field(dtype=ti.f32, shape=MAX_COLLECTED)
num_collected = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _collect_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    use_acceleration: ti.i32,
):
    ray_origin = vec3(ox, oy, oz)
    ray_direction = vec3(dx, dy, dz)
    count = 0

    n = num_nodes[None]
    i = 0
    while i < n:
        next_i = i + 1
        if use_acceleration == 1 and _culled(i, ray_origin, ray_direction, -T_MAX, T_MAX) == 1:
            next_i = node_skip[i]
        elif is_primitive(i) == 1:
            hits = intersect_node(i, ray_origin, ray_direction)
            lower = -T_MAX
            exclusive = 0
            while True:
                t = first_kept_hit(
                    i, hits, ray_origin, ray_direction, lower, T_MAX, exclusive, use_acceleration
                )
                if t >= T_MAX:
                    break
                # Repeated roots at the same distance are all recorded
                for s in ti.static(range(MAX_LOCAL_HITS)):
                    if s < hits.count and hits.ts[s] == t:
                        if count < MAX_COLLECTED:
                            collected_t[count] = t
                            collected_node[count] = i
                            collected_u[count] = hits.u
                            collected_v[count] = hits.v
                        count += 1
                lower = t
                exclusive = 1
        i = next_i

    num_collected[None] = count


@dataclass(frozen=True)
class Intersection:
    """One intersection of a ray with a scene object.

    Attributes:
        t: Parametric distance along the ray (may be negative).
        object: The primitive object that was hit.
        u: Barycentric u (triangles only).
        v: Barycentric v (triangles only).
    """

    t: float
    object: Object
    u: float = 0.0
    v: float = 0.0


class Intersections(Sequence):
    """Intersections of one ray, sorted by distance.

    Sorting is stable, so intersections at equal distances keep the order in
    which they were found. Negative distances are kept (they tell whether the
    ray starts inside a surface) but are never selected by ``hit``.
    """

    def __init__(self, intersections: Iterable[Intersection] = ()) -> None:
        self._items = sorted(intersections, key=lambda x: x.t)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __iter__(self):
        return iter(self._items)

    def hit(self) -> Intersection | None:
        """Return the visible intersection: the smallest non-negative t."""
        for intersection in self._items:
            if intersection.t >= 0.0:
                return intersection
        return None

    def __repr__(self) -> str:
        return f"Intersections({[round(i.t, 5) for i in self._items]})"


def collect_intersections(
    ray: "Ray3D",
    sources: Sequence[Object],
    use_acceleration: bool = True,
) -> Intersections:
    """Intersect a ray with every primitive in the arena.

    Args:
        ray: The world-space ray.
        sources: The scene object of each arena node, indexed by node.
        use_acceleration: Whether to cull subtrees by bounding box.

    Returns:
        All intersections, sorted by t.

    Raises:
        RuntimeError: If the ray has more intersections than can be collected.
    """
    o = ray.origin
    d = ray.direction
    _collect_kernel(o.x, o.y, o.z, d.x, d.y, d.z, int(use_acceleration))

    count = int(num_collected[None])
    if count > MAX_COLLECTED:
        raise RuntimeError(f"Maximum number of collected intersections ({MAX_COLLECTED}) exceeded")
    ts = collected_t.to_numpy()[:count]
    nodes = collected_node.to_numpy()[:count]
    us = collected_u.to_numpy()[:count]
    vs = collected_v.to_numpy()[:count]
    return Intersections(
        Intersection(float(t), sources[int(node)], float(u), float(v))
        for t, node, u, v in zip(ts, nodes, us, vs)
    )
