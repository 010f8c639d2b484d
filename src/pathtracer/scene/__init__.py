"""Scene module for scene management and ray-scene queries.

Components:
    intersection: Primitive and BVH storage, closest-hit queries
    manager: Unified scene manager coordinating primitives and materials
    sky: Background seen by rays that leave the scene
    random_scene: Demo scenes

Scene data is organized for parallel access:
    - Structure-of-Arrays layout for geometric data
    - A flattened BVH traversed without a stack
    - Contiguous material ID arrays
"""

from .intersection import (
    MAX_BVH_NODES,
    MAX_PRIMITIVES,
    PrimitiveKind,
    SceneHitRecord,
    intersect_scene,
    intersect_scene_linear,
)
from .manager import MaterialInfo, MaterialType, SceneConfig, SceneManager
from .random_scene import (
    create_random_scene,
    create_single_sphere_scene,
    create_three_spheres_scene,
)
from .sky import GradientSky, SkyType, SolidSky, setup_sky, sky_color

__all__ = [
    # Intersection
    "PrimitiveKind",
    "SceneHitRecord",
    "MAX_PRIMITIVES",
    "MAX_BVH_NODES",
    "intersect_scene",
    "intersect_scene_linear",
    # Manager
    "SceneManager",
    "SceneConfig",
    "MaterialInfo",
    "MaterialType",
    # Sky
    "SkyType",
    "GradientSky",
    "SolidSky",
    "setup_sky",
    "sky_color",
    # Demo scenes
    "create_single_sphere_scene",
    "create_three_spheres_scene",
    "create_random_scene",
]
