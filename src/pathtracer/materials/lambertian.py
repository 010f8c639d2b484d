"""Lambertian (ideal diffuse) material implementation.

Two diffuse scattering rules are provided:

- Lambertian: the scattered direction is the surface normal plus a random
  unit vector, which distributes directions with a cosine-weighted density
  around the normal.
- Hemispherical: the scattered direction is a random unit vector flipped
  into the normal's hemisphere (uniform over the hemisphere).

Both always scatter and attenuate by the albedo texture evaluated at the hit
point. With this sampling the BRDF and cosine terms cancel against the pdf,
so the attenuation is simply the albedo.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import add_lambertian_material
    >>> material_idx = add_lambertian_material(albedo=(0.5, 0.5, 0.5))
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, random_on_hemisphere, random_unit_vector
from pathtracer.materials.texture import add_solid_texture, get_texture_count, texture_value

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, hemispherical: ti.i32, rng: ti.u32):
    """Sample a scattered ray direction for a diffuse surface.

    Args:
        albedo: The diffuse reflectance color at the hit point.
        normal: The surface normal at the hit point (facing the incoming ray).
        hemispherical: 1 for uniform hemisphere sampling, 0 for Lambertian.
        rng: The current generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter, next_state).
        Diffuse surfaces never absorb, so did_scatter is always 1.
    """
    scattered_direction = vec3(0.0, 0.0, 0.0)
    state = rng
    if hemispherical == 1:
        scattered_direction, state = random_on_hemisphere(normal, state)
    else:
        on_sphere, state = random_unit_vector(state)
        scattered_direction = normal + on_sphere

    # The random unit vector can cancel the normal
    if near_zero(scattered_direction):
        scattered_direction = normal

    return scattered_direction, albedo, 1, state


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 1024

# Storage for Lambertian material properties
lambertian_textures = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
lambertian_hemispherical = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def add_lambertian_material(
    albedo: tuple[float, float, float] | None = None,
    texture_id: int | None = None,
    hemispherical: bool = False,
) -> int:
    """Add a Lambertian material to the material registry.

    Exactly one of ``albedo`` and ``texture_id`` must be given. A plain albedo
    is stored as a solid texture.

    Args:
        albedo: The diffuse reflectance color as (R, G, B) tuple.
            Each component should be in [0, 1] for energy conservation.
        texture_id: ID of an existing texture to use as albedo.
        hemispherical: Use uniform hemisphere sampling instead of
            Lambertian sampling.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the albedo is invalid, the texture does not exist,
            or both/neither of albedo and texture_id are given.
    """
    if (albedo is None) == (texture_id is None):
        raise ValueError("Specify exactly one of albedo or texture_id")

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    if albedo is not None:
        texture_id = add_solid_texture(albedo)
    elif texture_id < 0 or texture_id >= get_texture_count():
        raise ValueError(f"Unknown texture ID {texture_id}")

    lambertian_textures[idx] = texture_id
    lambertian_hemispherical[idx] = 1 if hemispherical else 0
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32, point: vec3) -> vec3:
    """Evaluate the albedo texture of a Lambertian material at a point."""
    return texture_value(lambertian_textures[material_idx], point)


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, point: vec3, normal: vec3, rng: ti.u32):
    """Sample a scattered direction for a Lambertian material by index.

    Args:
        material_idx: The index of the material in the registry.
        point: The hit point (for texture lookup).
        normal: The surface normal at the hit point.
        rng: The current generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter, next_state).
    """
    albedo = get_lambertian_albedo(material_idx, point)
    return scatter_lambertian(albedo, normal, lambertian_hemispherical[material_idx], rng)
