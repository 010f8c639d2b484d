"""Geometry module for shape primitives and spatial acceleration.

Components:
    aabb: Axis-aligned bounding boxes and the ray slab test
    sphere: Static and moving spheres with ray-sphere intersection
    bvh: Bounding volume hierarchy construction and flattening

Intersection routines are Taichi functions (@ti.func). Bounding boxes and
the hierarchy are built on the host with NumPy.
"""

from .aabb import Aabb, hit_aabb, surrounding_box
from .bvh import (
    MAX_SEQUENTIAL,
    Bounded,
    Bvh,
    BvhBranch,
    BvhConstructionError,
    BvhLeaf,
    FlatBvh,
    build_bvh,
)
from .sphere import (
    HitRecord,
    MovingSphere,
    MovingSphereInfo,
    Sphere,
    SphereInfo,
    center_at,
    hit_moving_sphere,
    hit_sphere,
)

__all__ = [
    "Aabb",
    "surrounding_box",
    "hit_aabb",
    "Sphere",
    "MovingSphere",
    "HitRecord",
    "SphereInfo",
    "MovingSphereInfo",
    "hit_sphere",
    "hit_moving_sphere",
    "center_at",
    "Bounded",
    "Bvh",
    "BvhLeaf",
    "BvhBranch",
    "FlatBvh",
    "BvhConstructionError",
    "MAX_SEQUENTIAL",
    "build_bvh",
]
