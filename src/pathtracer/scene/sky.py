"""Background radiance for rays that leave the scene.

Two backgrounds are supported:

- GradientSky: a vertical blend from white at the horizon-down direction to
  a sky color straight up,
      t = 0.5 * (unit(direction).y + 1)
      color = (1 - t) * white + t * sky_color
- SolidSky: a constant color. Black leaves the scene unlit, which is mostly
  useful in tests.

The active background lives in Taichi fields set by ``setup_sky`` and is
read by ``sky_color`` inside kernels.
"""

from dataclasses import dataclass
from enum import IntEnum

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3


class SkyType(IntEnum):
    """Kinds of background."""

    GRADIENT = 0
    SOLID = 1


@dataclass
class GradientSky:
    """White-to-color vertical gradient.

    Attributes:
        color: Color straight up. The default is the classic light blue.
    """

    color: tuple[float, float, float] = (0.5, 0.7, 1.0)


@dataclass
class SolidSky:
    """Constant background color."""

    color: tuple[float, float, float] = (0.0, 0.0, 0.0)


Sky = GradientSky | SolidSky

_sky_type = ti.field(dtype=ti.i32, shape=())
_sky_color = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_sky(sky: Sky) -> None:
    """Write the background into the Taichi fields.

    Args:
        sky: The background description.

    Raises:
        ValueError: If the sky type is not supported or a color component
            is negative.
    """
    if isinstance(sky, GradientSky):
        sky_type = SkyType.GRADIENT
    elif isinstance(sky, SolidSky):
        sky_type = SkyType.SOLID
    else:
        raise ValueError(f"Unsupported sky: {sky!r}")
    if any(component < 0.0 for component in sky.color):
        raise ValueError(f"Sky color components must be non-negative, got {sky.color}")

    _sky_type[None] = int(sky_type)
    _sky_color[None] = [sky.color[0], sky.color[1], sky.color[2]]


def get_sky_info() -> dict:
    """Get the current background state for debugging."""
    return {
        "type": SkyType(int(_sky_type[None])).name.lower(),
        "color": tuple(float(c) for c in _sky_color[None]),
    }


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Background radiance seen along a direction.

    Args:
        direction: Ray direction (any non-zero length).

    Returns:
        The background color.
    """
    color = _sky_color[None]
    if _sky_type[None] == int(SkyType.GRADIENT):
        t = 0.5 * (tm.normalize(direction).y + 1.0)
        color = (1.0 - t) * vec3(1.0, 1.0, 1.0) + t * _sky_color[None]
    return color
