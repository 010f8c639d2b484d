"""Scene-level primitive storage and intersection testing.

Primitives (static and moving spheres) are stored in Taichi fields with a
Structure of Arrays layout and referenced by index. The flattened BVH built
on the host (see ``pathtracer.geometry.bvh``) is stored alongside them.

Two scene queries return the closest hit with material information:

- ``intersect_scene`` walks the BVH.
- ``intersect_scene_linear`` tests every primitive in insertion order.

Both return the same nearest hit distance for any ray.

BVH traversal:
    The nodes are stored in pre-order with skip links, so the walk needs no
    stack. Starting at the root, a node whose box is missed (or a leaf, after
    its primitive is tested) continues at ``skip``; a branch whose box is hit
    continues at its left child, ``node + 1``. Left subtrees are therefore
    visited before right subtrees, and every test after a hit is bounded by
    the closest distance found so far. A hit has to be strictly closer to
    replace the current one, so on an exact tie the leftmost primitive wins.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.intersection import add_sphere, clear_scene
    >>> clear_scene()
    >>> add_sphere((0.0, 0.0, -1.0), 0.5, material_id=0)
    >>> # Use intersect_scene within a Taichi kernel after uploading a BVH
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import hit_aabb
from pathtracer.geometry.bvh import FlatBvh
from pathtracer.geometry.sphere import (
    HitRecord,
    MovingSphere,
    Sphere,
    hit_moving_sphere,
    hit_sphere,
)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class PrimitiveKind(IntEnum):
    """Kinds of primitive stored in the scene."""

    SPHERE = 0
    MOVING_SPHERE = 1


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Extends the basic HitRecord with material_id for scene-level queries.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
            Only valid if hit == 1.
        normal: The surface normal at the intersection point. Always faces
            against the ray. Only valid if hit == 1.
        front_face: Whether the ray hit the front face (1) or back face (0).
            Only valid if hit == 1.
        material_id: The material ID of the hit primitive.
            Only valid if hit == 1. -1 indicates no material assigned.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32


# Maximum number of primitives supported in the scene
MAX_PRIMITIVES = 4096

# A binary tree with one primitive per leaf has 2n - 1 nodes
MAX_BVH_NODES = 2 * MAX_PRIMITIVES - 1

# Primitive storage: Structure of Arrays layout
primitive_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_center0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_center1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_time0 = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_time1 = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_radii = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# Flattened BVH storage
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_primitive = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_skip = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives and the BVH from the scene.

    Resets the counts to zero. The actual field data is not cleared but will
    be overwritten when new primitives are added.
    """
    num_primitives[None] = 0
    num_bvh_nodes[None] = 0


def _next_primitive_slot() -> int:
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    return idx


def add_sphere(center: tuple[float, float, float], radius: float, material_id: int = 0) -> int:
    """Add a static sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere. A negative radius flips the normal.
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    idx = _next_primitive_slot()
    primitive_kinds[idx] = int(PrimitiveKind.SPHERE)
    primitive_center0[idx] = vec3(center[0], center[1], center[2])
    primitive_center1[idx] = vec3(center[0], center[1], center[2])
    primitive_time0[idx] = 0.0
    primitive_time1[idx] = 0.0
    primitive_radii[idx] = radius
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def add_moving_sphere(
    center0: tuple[float, float, float],
    center1: tuple[float, float, float],
    time0: float,
    time1: float,
    radius: float,
    material_id: int = 0,
) -> int:
    """Add a linearly moving sphere to the scene.

    Args:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion.
        time1: End of the motion.
        radius: The radius of the sphere.
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    idx = _next_primitive_slot()
    primitive_kinds[idx] = int(PrimitiveKind.MOVING_SPHERE)
    primitive_center0[idx] = vec3(center0[0], center0[1], center0[2])
    primitive_center1[idx] = vec3(center1[0], center1[1], center1[2])
    primitive_time0[idx] = time0
    primitive_time1[idx] = time1
    primitive_radii[idx] = radius
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def get_primitive_count() -> int:
    """Get the number of primitives in the scene."""
    return int(num_primitives[None])


def upload_bvh(flat: FlatBvh) -> None:
    """Copy a flattened BVH into the device fields.

    Args:
        flat: The flattened hierarchy. Leaf primitive indices must refer to
            primitives already added to the scene.

    Raises:
        RuntimeError: If the hierarchy has more nodes than MAX_BVH_NODES.
        ValueError: If a leaf refers to a primitive that does not exist.
    """
    n = len(flat)
    if n > MAX_BVH_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_BVH_NODES}) exceeded")
    if n > 0 and int(flat.primitive.max()) >= get_primitive_count():
        raise ValueError("BVH refers to a primitive that is not in the scene")

    box_min = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    primitive = np.full(MAX_BVH_NODES, -1, dtype=np.int32)
    skip = np.zeros(MAX_BVH_NODES, dtype=np.int32)
    box_min[:n] = flat.box_min
    box_max[:n] = flat.box_max
    primitive[:n] = flat.primitive
    skip[:n] = flat.skip

    bvh_box_min.from_numpy(box_min)
    bvh_box_max.from_numpy(box_max)
    bvh_primitive.from_numpy(primitive)
    bvh_skip.from_numpy(skip)
    num_bvh_nodes[None] = n


def get_bvh_node_count() -> int:
    """Get the number of uploaded BVH nodes (0 if none)."""
    return int(num_bvh_nodes[None])


@ti.func
def _hit_record_to_scene_hit_record(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    """Convert a HitRecord to a SceneHitRecord with material ID."""
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        material_id=material_id,
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
    )


@ti.func
def intersect_primitive(index: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test a ray against one stored primitive.

    Args:
        index: The primitive index.
        ray: The ray to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord for the primitive (hit == 0 on a miss).
    """
    rec = HitRecord(hit=0, t=0.0, point=vec3(0.0), normal=vec3(0.0), front_face=0)
    if primitive_kinds[index] == int(PrimitiveKind.MOVING_SPHERE):
        sphere = MovingSphere(
            center0=primitive_center0[index],
            center1=primitive_center1[index],
            time0=primitive_time0[index],
            time1=primitive_time1[index],
            radius=primitive_radii[index],
        )
        rec = hit_moving_sphere(ray, sphere, t_min, t_max)
    else:
        sphere = Sphere(center=primitive_center0[index], radius=primitive_radii[index])
        rec = hit_sphere(ray, sphere, t_min, t_max)
    return _hit_record_to_scene_hit_record(rec, primitive_material_ids[index])


@ti.func
def intersect_bvh(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Find the closest hit by walking the flattened BVH.

    Args:
        ray: The ray to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest SceneHitRecord, or a miss record if nothing was hit.
    """
    closest_t = t_max
    result = _make_miss_record()

    n_nodes = num_bvh_nodes[None]
    node = 0
    while node < n_nodes:
        next_node = bvh_skip[node]
        if hit_aabb(bvh_box_min[node], bvh_box_max[node], ray, t_min, closest_t) == 1:
            prim = bvh_primitive[node]
            if prim >= 0:
                rec = intersect_primitive(prim, ray, t_min, closest_t)
                if rec.hit == 1:
                    closest_t = rec.t
                    result = rec
            else:
                next_node = node + 1
        node = next_node

    return result


@ti.func
def intersect_scene(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test a ray against the scene using the BVH.

    Args:
        ray: The ray to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    return intersect_bvh(ray, t_min, t_max)


@ti.func
def intersect_scene_linear(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test a ray against every primitive in insertion order.

    Tracks the closest hit so far and narrows t_max after each hit.

    Args:
        ray: The ray to test.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest SceneHitRecord, or a miss record if nothing was hit.
    """
    closest_t = t_max
    result = _make_miss_record()

    n_prims = num_primitives[None]
    for i in range(n_prims):
        rec = intersect_primitive(i, ray, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec

    return result
