"""Unified scene manager for coordinating primitives, materials and the BVH.

This module provides a high-level scene management API that coordinates
primitive storage (static and moving spheres) with material assignment and
acceleration structure construction. It tracks which material type
(Lambertian, Metal, Dielectric) each material ID corresponds to, enabling
material dispatch in the path tracer.

The SceneManager maintains:
- A unified material_id space across all material types
- Mapping from material_id to (material_type, type_local_index)
- Textures, the background and per-scene render parameters
- The BVH, built once by ``build()`` before rendering
- Scene serialization/configuration support

Once ``build()`` has run the scene is read-only while rendering. Adding
anything afterwards discards the BVH, and the scene has to be built again.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> bvh = scene.build(seed=0)
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import taichi as ti

from pathtracer.geometry.bvh import Bvh, build_bvh
from pathtracer.geometry.sphere import MovingSphereInfo, SphereInfo
from pathtracer.materials.dielectric import add_dielectric_material, clear_dielectric_materials
from pathtracer.materials.lambertian import add_lambertian_material, clear_lambertian_materials
from pathtracer.materials.metal import add_metal_material, clear_metal_materials
from pathtracer.materials.texture import (
    add_checker_texture,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
)
from pathtracer.scene.intersection import (
    MAX_PRIMITIVES,
    add_moving_sphere,
    add_sphere,
    clear_scene,
    get_primitive_count,
    upload_bvh,
)
from pathtracer.scene.sky import GradientSky, SolidSky, Sky, setup_sky

logger = logging.getLogger(__name__)


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


# Maximum number of materials across all types
MAX_MATERIALS = 3072

# Default render parameters
DEFAULT_MAX_DEPTH = 50
DEFAULT_SAMPLES_PER_PIXEL = 100

# Taichi fields for material type lookup
# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
# (e.g., if material_id 5 is the 2nd metal material, material_type_indices[5] = 1)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    """Clear the material tracking fields."""
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The material type as an integer (see MaterialType enum).
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The index into the type-specific material array.
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material (Lambertian, Metal, Dielectric).
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        textures: List of texture configurations.
        materials: List of material configurations.
        spheres: List of static sphere configurations.
        moving_spheres: List of moving sphere configurations.
        sky: Background configuration.
        max_depth: Maximum number of bounces per path.
        samples_per_pixel: Number of samples averaged per pixel.
    """

    textures: list[dict[str, Any]] = field(default_factory=list)
    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    moving_spheres: list[dict[str, Any]] = field(default_factory=list)
    sky: dict[str, Any] = field(default_factory=lambda: {"type": "gradient", "color": [0.5, 0.7, 1.0]})
    max_depth: int = DEFAULT_MAX_DEPTH
    samples_per_pixel: int = DEFAULT_SAMPLES_PER_PIXEL


def _vec(values: Any) -> tuple[float, float, float]:
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Unified scene manager coordinating primitives, materials and the BVH.

    The Taichi-side storage is module level, so only one scene is live at a
    time; creating a SceneManager clears whatever was loaded before.

    Attributes:
        textures: Parameters of every registered texture, by texture ID.
        materials: List of MaterialInfo for all registered materials.
        primitives: Host descriptions of every primitive, by primitive index.
        sky: The background.
        max_depth: Maximum number of bounces per path.
        samples_per_pixel: Number of samples averaged per pixel.

    Example:
        >>> scene = SceneManager(max_depth=10, samples_per_pixel=16)
        >>> red = scene.add_lambertian_material(albedo=(0.8, 0.1, 0.1))
        >>> gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere((0, 0, -1), 0.5, red)
        >>> scene.add_sphere((1, 0, -1), 0.5, gold)
        >>> scene.add_sphere((-1, 0, -1), 0.5, glass)
        >>> scene.add_sphere((-1, 0, -1), -0.45, glass)
        >>> bvh = scene.build()
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        samples_per_pixel: int = DEFAULT_SAMPLES_PER_PIXEL,
        sky: Sky | None = None,
    ) -> None:
        """Initialize an empty scene.

        Raises:
            ValueError: If max_depth is negative or samples_per_pixel < 1.
        """
        self.textures: list[dict[str, Any]] = []
        self.materials: list[MaterialInfo] = []
        self.primitives: list[SphereInfo | MovingSphereInfo] = []
        self.sky: Sky = GradientSky()
        self.max_depth = DEFAULT_MAX_DEPTH
        self.samples_per_pixel = DEFAULT_SAMPLES_PER_PIXEL
        self._bvh: Bvh | None = None
        self._clear_all()
        self.set_render_params(max_depth, samples_per_pixel)
        self.set_sky(sky if sky is not None else GradientSky())

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        # Clear primitive and BVH storage
        clear_scene()
        # Clear material registries
        clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        # Clear material tracking
        _clear_material_tracking()
        # Clear local tracking
        self.textures.clear()
        self.materials.clear()
        self.primitives.clear()
        self._bvh = None

    def clear(self) -> None:
        """Clear the entire scene (primitives, materials and textures).

        The background and render parameters are kept.
        """
        self._clear_all()

    def set_render_params(self, max_depth: int, samples_per_pixel: int) -> None:
        """Set the per-scene render parameters.

        Args:
            max_depth: Maximum number of bounces per path (0 renders black).
            samples_per_pixel: Number of samples averaged per pixel.

        Raises:
            ValueError: If max_depth is negative or samples_per_pixel < 1.
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be >= 1, got {samples_per_pixel}")
        self.max_depth = int(max_depth)
        self.samples_per_pixel = int(samples_per_pixel)

    def set_sky(self, sky: Sky) -> None:
        """Set the background seen by rays that leave the scene."""
        setup_sky(sky)
        self.sky = sky

    # =========================================================================
    # Texture Management
    # =========================================================================

    def add_solid_texture(self, color: tuple[float, float, float]) -> int:
        """Add a constant-color texture and return its ID."""
        texture_id = add_solid_texture(color)
        self.textures.append({"type": "solid", "color": list(color)})
        return texture_id

    def add_checker_texture(
        self,
        even: tuple[float, float, float],
        odd: tuple[float, float, float],
        scale: float = 10.0,
    ) -> int:
        """Add a 3D checker texture and return its ID."""
        texture_id = add_checker_texture(even, odd, scale)
        self.textures.append({"type": "checker", "even": list(even), "odd": list(odd), "scale": scale})
        return texture_id

    def add_noise_texture(
        self,
        color: tuple[float, float, float] = (1.0, 1.0, 1.0),
        scale: float = 1.0,
        seed: int | None = 0,
    ) -> int:
        """Add a Perlin noise texture and return its ID."""
        texture_id = add_noise_texture(color, scale, seed)
        self.textures.append({"type": "noise", "color": list(color), "scale": scale, "seed": seed})
        return texture_id

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        params: dict[str, Any],
    ) -> int:
        """Assign a unified material ID to a type-local material."""
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        self._bvh = None
        return material_id

    def add_lambertian_material(
        self,
        albedo: tuple[float, float, float] | None = None,
        texture_id: int | None = None,
        hemispherical: bool = False,
    ) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Exactly one of ``albedo`` and ``texture_id`` must be given. A plain
        albedo is registered as a solid texture first.

        Args:
            albedo: The diffuse reflectance color as (R, G, B) tuple.
            texture_id: ID of a texture from one of the add_*_texture methods.
            hemispherical: Use uniform hemisphere sampling.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo or texture is invalid.
        """
        if (albedo is None) == (texture_id is None):
            raise ValueError("Specify exactly one of albedo or texture_id")
        if albedo is not None:
            texture_id = self.add_solid_texture(albedo)

        type_index = add_lambertian_material(texture_id=texture_id, hemispherical=hemispherical)
        return self._register_material(
            MaterialType.LAMBERTIAN,
            type_index,
            {"texture_id": texture_id, "hemispherical": hemispherical},
        )

    def add_metal_material(
        self,
        albedo: tuple[float, float, float],
        fuzz: float = 0.0,
    ) -> int:
        """Add a metal (specular) material to the scene.

        Args:
            albedo: The reflective color as (R, G, B) tuple.
            fuzz: The fuzz factor, clamped to at most 1.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo is outside [0, 1] or fuzz is negative.
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._register_material(
            MaterialType.METAL,
            type_index,
            {"albedo": list(albedo), "fuzz": min(fuzz, 1.0)},
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric (glass) material to the scene.

        Args:
            ior: Index of refraction. Default is 1.5 (glass).

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is less than 1.0.
        """
        type_index = add_dielectric_material(ior)
        return self._register_material(MaterialType.DIELECTRIC, type_index, {"ior": ior})

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID.

        Args:
            material_id: The unified material ID.

        Returns:
            MaterialInfo for the material, or None if not found.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For kernel-side lookup, use the get_material_type() Taichi function.

        Args:
            material_id: The unified material ID.

        Returns:
            The MaterialType, or None for invalid material IDs.
        """
        info = self.get_material_info(material_id)
        return info.material_type if info is not None else None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_material_id(self, material_id: int) -> None:
        if material_id < 0 or material_id >= num_materials[None]:
            raise ValueError(f"Invalid material_id: {material_id}")

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a static sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere. A negative radius gives a
                sphere with inward-facing normals (hollow glass shells).
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added primitive.

        Raises:
            RuntimeError: If the maximum number of primitives is exceeded.
            ValueError: If material_id is invalid.
        """
        self._check_material_id(material_id)
        index = add_sphere(center, radius, material_id)
        self.primitives.append(SphereInfo(center=_vec(center), radius=radius, material_id=material_id))
        self._bvh = None
        return index

    def add_moving_sphere(
        self,
        center0: tuple[float, float, float],
        center1: tuple[float, float, float],
        time0: float,
        time1: float,
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere moving linearly from center0 at time0 to center1 at time1.

        Args:
            center0: Center at time0.
            center1: Center at time1.
            time0: Start of the motion.
            time1: End of the motion.
            radius: The radius of the sphere.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added primitive.

        Raises:
            RuntimeError: If the maximum number of primitives is exceeded.
            ValueError: If material_id is invalid.
        """
        self._check_material_id(material_id)
        index = add_moving_sphere(center0, center1, time0, time1, radius, material_id)
        self.primitives.append(
            MovingSphereInfo(
                center0=_vec(center0),
                center1=_vec(center1),
                time0=time0,
                time1=time1,
                radius=radius,
                material_id=material_id,
            )
        )
        self._bvh = None
        return index

    # =========================================================================
    # Acceleration Structure
    # =========================================================================

    def build(self, time0: float = 0.0, time1: float = 0.0, seed: int | None = None) -> Bvh:
        """Build the BVH over every primitive and upload it for rendering.

        Args:
            time0: Start of the shutter interval the boxes must cover.
            time1: End of the shutter interval.
            seed: Seed for the BVH split axes.

        Returns:
            The built hierarchy.

        Raises:
            BvhConstructionError: If the scene is empty.
            RuntimeError: If the hierarchy does not fit in the device arrays.
        """
        bvh = build_bvh(self.primitives, time0, time1, seed=seed)
        upload_bvh(bvh.flatten())
        self._bvh = bvh
        logger.info(
            "Scene built: %d primitives, %d materials, %d BVH nodes (depth %d)",
            len(self.primitives),
            len(self.materials),
            bvh.node_count,
            bvh.depth,
        )
        return bvh

    @property
    def is_built(self) -> bool:
        """Whether the BVH reflects the current primitives."""
        return self._bvh is not None

    @property
    def bvh(self) -> Bvh | None:
        """The current BVH, or None if the scene has not been built."""
        return self._bvh

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return get_primitive_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all textures, materials and primitives.
        """
        config = SceneConfig(
            textures=[dict(texture) for texture in self.textures],
            max_depth=self.max_depth,
            samples_per_pixel=self.samples_per_pixel,
        )

        for mat in self.materials:
            config.materials.append({"type": mat.material_type.name.lower(), **mat.params})

        for prim in self.primitives:
            if isinstance(prim, MovingSphereInfo):
                config.moving_spheres.append(
                    {
                        "center0": list(prim.center0),
                        "center1": list(prim.center1),
                        "time0": prim.time0,
                        "time1": prim.time1,
                        "radius": prim.radius,
                        "material_id": prim.material_id,
                    }
                )
            else:
                config.spheres.append(
                    {
                        "center": list(prim.center),
                        "radius": prim.radius,
                        "material_id": prim.material_id,
                    }
                )

        sky_type = "gradient" if isinstance(self.sky, GradientSky) else "solid"
        config.sky = {"type": sky_type, "color": list(self.sky.color)}
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration. The scene has
        to be built again before rendering.

        Args:
            config: The scene configuration to load.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()
        self.set_render_params(config.max_depth, config.samples_per_pixel)

        sky_type = config.sky.get("type", "gradient").lower()
        if sky_type == "gradient":
            self.set_sky(GradientSky(_vec(config.sky.get("color", [0.5, 0.7, 1.0]))))
        elif sky_type == "solid":
            self.set_sky(SolidSky(_vec(config.sky.get("color", [0.0, 0.0, 0.0]))))
        else:
            raise ValueError(f"Unknown sky type: {sky_type}")

        # Textures first, so that their IDs match the saved ones
        for tex_config in config.textures:
            tex_type = tex_config.get("type", "").lower()
            if tex_type == "solid":
                self.add_solid_texture(_vec(tex_config.get("color", [0.5, 0.5, 0.5])))
            elif tex_type == "checker":
                self.add_checker_texture(
                    _vec(tex_config.get("even", [0.2, 0.3, 0.1])),
                    _vec(tex_config.get("odd", [0.9, 0.9, 0.9])),
                    tex_config.get("scale", 10.0),
                )
            elif tex_type == "noise":
                self.add_noise_texture(
                    _vec(tex_config.get("color", [1.0, 1.0, 1.0])),
                    tex_config.get("scale", 1.0),
                    tex_config.get("seed", 0),
                )
            else:
                raise ValueError(f"Unknown texture type: {tex_type}")

        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            if mat_type == "lambertian":
                if "texture_id" in mat_config:
                    self.add_lambertian_material(
                        texture_id=mat_config["texture_id"],
                        hemispherical=mat_config.get("hemispherical", False),
                    )
                else:
                    self.add_lambertian_material(
                        albedo=_vec(mat_config.get("albedo", [0.5, 0.5, 0.5])),
                        hemispherical=mat_config.get("hemispherical", False),
                    )
            elif mat_type == "metal":
                self.add_metal_material(
                    _vec(mat_config.get("albedo", [0.8, 0.8, 0.8])),
                    mat_config.get("fuzz", 0.0),
                )
            elif mat_type == "dielectric":
                self.add_dielectric_material(mat_config.get("ior", 1.5))
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            self.add_sphere(
                _vec(sphere_config.get("center", [0, 0, 0])),
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )

        for sphere_config in config.moving_spheres:
            self.add_moving_sphere(
                _vec(sphere_config.get("center0", [0, 0, 0])),
                _vec(sphere_config.get("center1", [0, 0, 0])),
                sphere_config.get("time0", 0.0),
                sphere_config.get("time1", 1.0),
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization).

        Returns:
            A dictionary representation of the scene.
        """
        config = self.to_config()
        return {
            "textures": config.textures,
            "materials": config.materials,
            "spheres": config.spheres,
            "moving_spheres": config.moving_spheres,
            "sky": config.sky,
            "max_depth": config.max_depth,
            "samples_per_pixel": config.samples_per_pixel,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by to_dict().

        Args:
            data: Dictionary with 'textures', 'materials', 'spheres',
                'moving_spheres', 'sky', 'max_depth' and 'samples_per_pixel'
                keys. Missing keys take their defaults.
        """
        defaults = SceneConfig()
        config = SceneConfig(
            textures=data.get("textures", []),
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            moving_spheres=data.get("moving_spheres", []),
            sky=data.get("sky", defaults.sky),
            max_depth=data.get("max_depth", defaults.max_depth),
            samples_per_pixel=data.get("samples_per_pixel", defaults.samples_per_pixel),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_primitives() -> int:
        """Get the maximum number of primitives supported."""
        return MAX_PRIMITIVES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS
