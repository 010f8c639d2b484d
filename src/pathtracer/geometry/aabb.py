"""Axis-aligned bounding boxes.

Boxes exist on both sides of the host/device boundary:

- ``Aabb`` is a host-side (NumPy) value used while building the BVH. It
  provides ``surrounding_box`` for merging child boxes bottom-up.
- ``hit_aabb`` is the device-side slab test used during BVH traversal. The
  BVH stores boxes as pairs of vec3 in Taichi fields.

The slab test divides by the ray direction without checking for zero.
A zero component produces a signed infinity, and the interval is only ever
tightened through ``t0 > t_min`` style comparisons, which are false for NaN,
so degenerate rays never widen the interval or crash the kernel.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True)
class Aabb:
    """A host-side axis-aligned bounding box.

    Attributes:
        minimum: Minimum corner (x, y, z) as a float64 array.
        maximum: Maximum corner (x, y, z) as a float64 array.
    """

    minimum: npt.NDArray[np.float64]
    maximum: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        minimum = np.asarray(self.minimum, dtype=np.float64).reshape(3)
        maximum = np.asarray(self.maximum, dtype=np.float64).reshape(3)
        if np.any(minimum > maximum):
            raise ValueError(f"Invalid box: minimum {minimum} exceeds maximum {maximum}")
        object.__setattr__(self, "minimum", minimum)
        object.__setattr__(self, "maximum", maximum)

    @classmethod
    def around_sphere(cls, center: npt.ArrayLike, radius: float) -> "Aabb":
        """Create the tightest box around a sphere.

        A negative radius (hollow shell trick) is treated by magnitude.
        """
        c = np.asarray(center, dtype=np.float64)
        r = abs(float(radius))
        return cls(c - r, c + r)

    def contains_box(self, other: "Aabb") -> bool:
        """Check whether another box lies entirely inside this one."""
        return bool(np.all(self.minimum <= other.minimum) and np.all(other.maximum <= self.maximum))

    def contains_point(self, point: npt.ArrayLike) -> bool:
        """Check whether a point lies inside (or on) this box."""
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(self.minimum <= p) and np.all(p <= self.maximum))

    def hit(self, origin: npt.ArrayLike, direction: npt.ArrayLike, t_min: float, t_max: float) -> bool:
        """Host-side slab test, mirroring ``hit_aabb``.

        Args:
            origin: Ray origin.
            direction: Ray direction (zero components allowed).
            t_min: Lower bound of the parametric interval.
            t_max: Upper bound of the parametric interval.

        Returns:
            True if the ray overlaps the box within (t_min, t_max).
        """
        o = np.asarray(origin, dtype=np.float64)
        d = np.asarray(direction, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            for axis in range(3):
                inv_d = np.float64(1.0) / d[axis]
                t0 = (self.minimum[axis] - o[axis]) * inv_d
                t1 = (self.maximum[axis] - o[axis]) * inv_d
                if inv_d < 0.0:
                    t0, t1 = t1, t0
                t_min = t0 if t0 > t_min else t_min
                t_max = t1 if t1 < t_max else t_max
                if t_max <= t_min:
                    return False
        return True


def surrounding_box(box0: Aabb, box1: Aabb) -> Aabb:
    """Compute the tightest box containing two boxes.

    Componentwise minimum of the minima and maximum of the maxima. The
    operation is associative and commutative, so parent boxes can be merged
    bottom-up in any grouping.

    Args:
        box0: First box.
        box1: Second box.

    Returns:
        The smallest box containing both inputs.
    """
    return Aabb(
        np.minimum(box0.minimum, box1.minimum),
        np.maximum(box0.maximum, box1.maximum),
    )


@ti.func
def hit_aabb(box_min: vec3, box_max: vec3, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Slab test between a ray and an axis-aligned box.

    For each axis, computes the entry and exit distances with the inverse
    direction (swapping them for negative directions) and tightens the
    interval. The box is missed once the interval becomes empty.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        ray: The ray to test.
        t_min: Lower bound of the parametric interval.
        t_max: Upper bound of the parametric interval.

    Returns:
        1 if the ray overlaps the box within (t_min, t_max), 0 otherwise.
    """
    lo = t_min
    hi = t_max
    hit = 1

    for axis in ti.static(range(3)):
        inv_d = 1.0 / ray.direction[axis]
        t0 = (box_min[axis] - ray.origin[axis]) * inv_d
        t1 = (box_max[axis] - ray.origin[axis]) * inv_d

        near = ti.select(inv_d < 0.0, t1, t0)
        far = ti.select(inv_d < 0.0, t0, t1)

        lo = ti.select(near > lo, near, lo)
        hi = ti.select(far < hi, far, hi)

        if hi <= lo:
            hit = 0

    return hit
