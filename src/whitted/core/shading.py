"""Phong shading with hard and soft shadows.

Every light sample contributes the Phong model (ambient + diffuse +
specular). Samples that the surface faces away from, or that a
shadow-casting object occludes, keep only the ambient term. Contributions
of a light's samples are summed with their weights and divided by the
light's total weight, so an area light that is partly blocked yields a
fractional (soft) shadow.

Shadow rays start from the over-point (the hit point pushed along the
normal by ``shadow_bias``) so that a surface cannot shadow itself through
floating-point error. The bias is a kernel argument, not a global, so tests
can vary it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.whitted.core.shading import phong
    >>> @ti.kernel
    ... def eye_between_light_and_surface() -> ti.math.vec3:
    ...     return phong(ti.math.vec3(1.0), 0.1, 0.9, 0.9, 200.0,
    ...                  ti.math.vec3(0, 0, -10), ti.math.vec3(1.0),
    ...                  ti.math.vec3(0.0), ti.math.vec3(0, 0, -1),
    ...                  ti.math.vec3(0, 0, -1), 0)
    >>> eye_between_light_and_surface()  # ~(1.9, 1.9, 1.9)
"""

import taichi as ti
import taichi.math as tm

from src.whitted.core.ray import reflect
from src.whitted.core.transform import transform_point
from src.whitted.geometry.uv import cube_face, cubic_uv, cylinder_face_uv
from src.whitted.materials.material import (
    material_ambient,
    material_diffuse,
    material_pattern,
    material_shininess,
    material_specular,
)
from src.whitted.materials.patterns import (
    PatternKind,
    face_pattern,
    is_uv_pattern,
    pattern_colour_at,
    pattern_kind,
    pattern_mapping,
    pattern_space_point,
)
from src.whitted.scene.intersection import (
    intersect_scene_any,
    node_cylinder_face,
    node_inverse,
    node_material,
    node_uv_at,
)
from src.whitted.scene.lights import (
    light_first_sample,
    light_sample_colour,
    light_sample_count,
    light_sample_position,
    light_sample_weight,
    num_lights,
)

vec2 = tm.vec2
vec3 = tm.vec3


@ti.func
def phong(
    colour: vec3,
    ambient: ti.f32,
    diffuse: ti.f32,
    specular: ti.f32,
    shininess: ti.f32,
    light_position: vec3,
    light_colour: vec3,
    point: vec3,
    eye: vec3,
    normal: vec3,
    shadowed: ti.i32,
) -> vec3:
    """Phong reflection from a single point light sample.

    Args:
        colour: Surface colour at the point.
        ambient: Material ambient coefficient.
        diffuse: Material diffuse coefficient.
        specular: Material specular coefficient.
        shininess: Material specular exponent.
        light_position: Position of the light sample.
        light_colour: Intensity of the light sample.
        point: The shaded point.
        eye: Unit vector from the point toward the viewer.
        normal: Unit surface normal, facing the viewer.
        shadowed: 1 if the sample is occluded.

    Returns:
        The reflected colour. Ambient is always included.
    """
    effective = colour * light_colour
    to_light = tm.normalize(light_position - point)

    result = effective * ambient
    light_dot_normal = tm.dot(to_light, normal)
    if shadowed == 0 and light_dot_normal > 0.0:
        result += effective * diffuse * light_dot_normal

        reflected = reflect(-to_light, normal)
        reflect_dot_eye = tm.dot(reflected, eye)
        if reflect_dot_eye > 0.0:
            result += light_colour * specular * ti.pow(reflect_dot_eye, shininess)

    return result


@ti.func
def surface_colour(node: ti.i32, world_point: vec3, u: ti.f32, v: ti.f32) -> vec3:
    """Pattern colour of a primitive's material at a world-space point.

    The point is carried into object space by the node's inverse transform
    and then into pattern space by the pattern's own inverse transform.
    Cube and capped-cylinder maps first pick the face the point lies on
    and hand over to that face's pattern with the face's (u, v).

    Args:
        node: Arena index of the primitive.
        world_point: Point on the surface.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).
    """
    pattern = material_pattern[node_material[node]]
    object_point = transform_point(node_inverse[node], world_point)
    point = pattern_space_point(pattern, object_point)

    kind = pattern_kind[pattern]
    uv = vec2(0.0, 0.0)
    if kind == int(PatternKind.CUBE_MAP):
        uv = cubic_uv(point)
        pattern = face_pattern(pattern, cube_face(point))
    elif kind == int(PatternKind.CAPPED_CYLINDER_MAP):
        face = node_cylinder_face(node, point)
        uv = cylinder_face_uv(point, face)
        pattern = face_pattern(pattern, face)
    elif is_uv_pattern(pattern):
        uv = node_uv_at(node, point, u, v, pattern_mapping[pattern])
    return pattern_colour_at(pattern, point, uv)


@ti.func
def shade_hit(
    node: ti.i32,
    point: vec3,
    eye: vec3,
    normal: vec3,
    u: ti.f32,
    v: ti.f32,
    shadow_bias: ti.f32,
    use_acceleration: ti.i32,
) -> vec3:
    """Local illumination of a hit from every light in the scene.

    Args:
        node: Arena index of the hit primitive.
        point: The hit point.
        eye: Unit vector toward the viewer.
        normal: Unit normal, already flipped to face the viewer.
        u: Barycentric u of the hit (triangles only).
        v: Barycentric v of the hit (triangles only).
        shadow_bias: Offset along the normal for shadow ray origins.
        use_acceleration: 1 to cull shadow rays by bounding box.

    Returns:
        Sum over lights of the weighted average of their samples.
    """
    material = node_material[node]
    colour = surface_colour(node, point, u, v)
    ambient = material_ambient[material]
    diffuse = material_diffuse[material]
    specular = material_specular[material]
    shininess = material_shininess[material]

    over_point = point + normal * shadow_bias
    total = vec3(0.0, 0.0, 0.0)

    for light in range(num_lights[None]):
        first = light_first_sample[light]
        light_total = vec3(0.0, 0.0, 0.0)
        weight_total = 0.0

        for s in range(first, first + light_sample_count[light]):
            position = light_sample_position[s]
            weight = light_sample_weight[s]

            # Samples behind the surface get no diffuse term, so skip the shadow ray
            shadowed = 0
            to_light = position - over_point
            distance = tm.length(to_light)
            if tm.dot(position - point, normal) > 0.0 and distance > 0.0:
                shadowed = intersect_scene_any(over_point, to_light / distance, distance, use_acceleration)

            light_total += weight * phong(
                colour,
                ambient,
                diffuse,
                specular,
                shininess,
                position,
                light_sample_colour[s],
                point,
                eye,
                normal,
                shadowed,
            )
            weight_total += weight

        if weight_total > 0.0:
            total += light_total / weight_total

    return total
