"""Procedural textures evaluated at surface points.

Three texture kinds are supported:

- SOLID: a constant color.
- CHECKER: a 3D checker pattern alternating between two colors, using the
  sign of sin(s*x) * sin(s*y) * sin(s*z) where s is the texture scale.
- NOISE: Perlin noise scaled by a color. Each noise texture owns its own
  random lattice values and permutation tables, generated on the host from a
  seeded NumPy generator so that textures are reproducible.

Textures are stored in a registry of Taichi fields and referenced by index.
``texture_value(texture_id, point)`` evaluates any texture inside a kernel.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.texture import add_checker_texture
    >>> checker = add_checker_texture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9), scale=10.0)
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3


class TextureType(IntEnum):
    """Kinds of procedural texture."""

    SOLID = 0
    CHECKER = 1
    NOISE = 2


# Number of lattice values and permutation entries per noise texture
PERLIN_POINT_COUNT = 256

# Maximum number of textures in the registry
MAX_TEXTURES = 1024

# Maximum number of noise textures (each owns a set of Perlin tables)
MAX_NOISE_TEXTURES = 16

# Texture storage
texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_color0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_color1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_noise_slots = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

# Perlin tables, one row per noise texture
perlin_values = ti.field(dtype=ti.f32, shape=(MAX_NOISE_TEXTURES, PERLIN_POINT_COUNT))
perlin_perm = ti.field(dtype=ti.i32, shape=(MAX_NOISE_TEXTURES, 3, PERLIN_POINT_COUNT))
num_noise_textures = ti.field(dtype=ti.i32, shape=())


def _validate_color(color: tuple[float, float, float], name: str = "Color") -> None:
    for i, component in enumerate(color):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"{name} component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )


def _next_texture_slot() -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    return idx


def clear_textures() -> None:
    """Clear all textures, including noise tables."""
    num_textures[None] = 0
    num_noise_textures[None] = 0


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Add a constant-color texture.

    Args:
        color: The color as (R, G, B), each component in [0, 1].

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If any color component is outside [0, 1].
    """
    _validate_color(color)
    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.SOLID)
    texture_color0[idx] = vec3(color[0], color[1], color[2])
    texture_color1[idx] = vec3(color[0], color[1], color[2])
    texture_scales[idx] = 1.0
    texture_noise_slots[idx] = -1
    num_textures[None] = idx + 1
    return idx


def add_checker_texture(
    even: tuple[float, float, float],
    odd: tuple[float, float, float],
    scale: float = 10.0,
) -> int:
    """Add a 3D checker texture.

    Args:
        even: Color where the sine product is non-negative.
        odd: Color where the sine product is negative.
        scale: Spatial frequency of the pattern. Must be positive.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If a color component is outside [0, 1] or scale <= 0.
    """
    _validate_color(even, "Even color")
    _validate_color(odd, "Odd color")
    if scale <= 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")

    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.CHECKER)
    texture_color0[idx] = vec3(even[0], even[1], even[2])
    texture_color1[idx] = vec3(odd[0], odd[1], odd[2])
    texture_scales[idx] = scale
    texture_noise_slots[idx] = -1
    num_textures[None] = idx + 1
    return idx


def generate_perlin_tables(seed: int | None = None) -> tuple[np.ndarray, np.ndarray]:
    """Generate Perlin lattice values and permutation tables.

    Args:
        seed: Seed for the NumPy generator.

    Returns:
        A tuple of (values, perms): values is a (256,) float32 array in
        [0, 1), perms is a (3, 256) int32 array holding one permutation of
        0..255 per axis.
    """
    rng = np.random.default_rng(seed)
    values = rng.random(PERLIN_POINT_COUNT).astype(np.float32)
    perms = np.stack([rng.permutation(PERLIN_POINT_COUNT) for _ in range(3)]).astype(np.int32)
    return values, perms


def add_noise_texture(
    color: tuple[float, float, float] = (1.0, 1.0, 1.0),
    scale: float = 1.0,
    seed: int | None = 0,
) -> int:
    """Add a Perlin noise texture.

    Args:
        color: Color multiplied by the noise value.
        scale: Frequency applied to the point before sampling the noise.
        seed: Seed for the lattice and permutation tables.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures or noise textures
            is exceeded.
        ValueError: If a color component is outside [0, 1] or scale <= 0.
    """
    _validate_color(color)
    if scale <= 0.0:
        raise ValueError(f"Noise scale must be positive, got {scale}")

    slot = num_noise_textures[None]
    if slot >= MAX_NOISE_TEXTURES:
        raise RuntimeError(f"Maximum number of noise textures ({MAX_NOISE_TEXTURES}) exceeded")
    idx = _next_texture_slot()

    values, perms = generate_perlin_tables(seed)
    for i in range(PERLIN_POINT_COUNT):
        perlin_values[slot, i] = float(values[i])
        for axis in range(3):
            perlin_perm[slot, axis, i] = int(perms[axis, i])
    num_noise_textures[None] = slot + 1

    texture_types[idx] = int(TextureType.NOISE)
    texture_color0[idx] = vec3(color[0], color[1], color[2])
    texture_color1[idx] = vec3(color[0], color[1], color[2])
    texture_scales[idx] = scale
    texture_noise_slots[idx] = slot
    num_textures[None] = idx + 1
    return idx


def get_texture_count() -> int:
    """Get the number of textures in the registry."""
    return int(num_textures[None])


@ti.func
def checker_value(even: vec3, odd: vec3, scale: ti.f32, point: vec3) -> vec3:
    """Evaluate a 3D checker pattern at a point."""
    sines = ti.sin(scale * point.x) * ti.sin(scale * point.y) * ti.sin(scale * point.z)
    result = even
    if sines < 0.0:
        result = odd
    return result


@ti.func
def perlin_noise(slot: ti.i32, point: vec3) -> ti.f32:
    """Trilinearly interpolated lattice noise in [0, 1).

    Args:
        slot: Index of the Perlin tables to use.
        point: Point at which to sample the noise.

    Returns:
        The noise value.
    """
    floor_p = ti.floor(point)
    frac = point - floor_p
    # Hermite smoothing
    w = frac * frac * (3.0 - 2.0 * frac)

    i = ti.cast(floor_p.x, ti.i32)
    j = ti.cast(floor_p.y, ti.i32)
    k = ti.cast(floor_p.z, ti.i32)

    accum = 0.0
    for di, dj, dk in ti.static(ti.ndrange(2, 2, 2)):
        hashed = (
            perlin_perm[slot, 0, (i + di) & 255]
            ^ perlin_perm[slot, 1, (j + dj) & 255]
            ^ perlin_perm[slot, 2, (k + dk) & 255]
        )
        weight = (
            (di * w.x + (1 - di) * (1.0 - w.x))
            * (dj * w.y + (1 - dj) * (1.0 - w.y))
            * (dk * w.z + (1 - dk) * (1.0 - w.z))
        )
        accum += weight * perlin_values[slot, hashed]
    return accum


@ti.func
def texture_value(texture_id: ti.i32, point: vec3) -> vec3:
    """Evaluate a texture from the registry at a point.

    Args:
        texture_id: The texture ID.
        point: The surface point.

    Returns:
        The texture color at the point.
    """
    kind = texture_types[texture_id]
    color = texture_color0[texture_id]
    scale = texture_scales[texture_id]

    result = color
    if kind == int(TextureType.CHECKER):
        result = checker_value(color, texture_color1[texture_id], scale, point)
    elif kind == int(TextureType.NOISE):
        result = color * perlin_noise(texture_noise_slots[texture_id], scale * point)
    return result
