"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and random direction sampling
    sampler: Counter-based random number generation, one stream per sample
    integrator: Ray color computation and the rendering kernels
    renderer: Band-by-band rendering of a scene through a camera

All compute-intensive operations use Taichi kernels.
"""

from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_on_hemisphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)
from .sampler import next_u32, normalize_seed, pcg_hash, random_f32, random_range, seed_sampler

# Note: integrator and renderer are NOT imported here to avoid circular imports.
# Import directly from pathtracer.core.integrator or pathtracer.core.renderer.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_on_hemisphere",
    "random_in_unit_disk",
    "pcg_hash",
    "seed_sampler",
    "next_u32",
    "random_f32",
    "random_range",
    "normalize_seed",
]
