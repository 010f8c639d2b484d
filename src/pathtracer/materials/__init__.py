"""Materials module for textures and scattering models.

Components:
    texture: Solid, checker and Perlin-noise textures
    lambertian: Diffuse reflection (unit-sphere or hemisphere sampling)
    metal: Mirror reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance

Each scatter function returns (scattered_direction, attenuation,
did_scatter, next_state). A did_scatter of 0 means the ray was absorbed.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_material_count,
    scatter_dielectric,
    scatter_dielectric_by_id,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo,
    get_lambertian_material_count,
    scatter_lambertian,
    scatter_lambertian_by_id,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_fuzz,
    get_metal_material_count,
    scatter_metal,
    scatter_metal_by_id,
)
from .texture import (
    TextureType,
    add_checker_texture,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
    get_texture_count,
    texture_value,
)

__all__ = [
    # Textures
    "TextureType",
    "add_solid_texture",
    "add_checker_texture",
    "add_noise_texture",
    "clear_textures",
    "get_texture_count",
    "texture_value",
    # Lambertian
    "scatter_lambertian",
    "scatter_lambertian_by_id",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_albedo",
    # Metal
    "scatter_metal",
    "scatter_metal_by_id",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "get_metal_fuzz",
    # Dielectric
    "scatter_dielectric",
    "scatter_dielectric_by_id",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
]
