"""Static and moving sphere primitives.

This module provides the Sphere and MovingSphere dataclasses for use inside
Taichi kernels, their intersection functions, and host-side descriptions
(``SphereInfo``, ``MovingSphereInfo``) that know their bounding boxes for BVH
construction.

The ray-sphere intersection is found by solving:
    |ray.origin + t * ray.direction - center|^2 = radius^2

which, with the half-b formulation, is:
    a*t^2 + 2*h*t + c = 0

where:
    a = dot(direction, direction)
    h = dot(direction, oc)
    c = dot(oc, oc) - radius^2
    oc = origin - center

The nearer root is tried first, then the farther one; both must lie strictly
inside (t_min, t_max).

A sphere with a negative radius has the same surface as its positive
counterpart, but ``(point - center) / radius`` then points inward. Nesting a
negative-radius sphere inside a glass sphere produces a hollow glass shell.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import Aabb, surrounding_box

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere. Negative values flip the normal.
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class MovingSphere:
    """A sphere whose center moves linearly between two instants.

    Attributes:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion.
        time1: End of the motion.
        radius: The radius of the sphere.
    """

    center0: vec3
    center1: vec3
    time0: ti.f32
    time1: ti.f32
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
            Only valid if hit == 1.
        normal: The surface normal at the intersection point. Always faces
            against the incoming ray. Only valid if hit == 1.
        front_face: Whether the ray hit the front face (1) or back face (0).
            Front face means the ray arrived from the side the outward normal
            points to. Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def _hit_sphere_at(ray: Ray, center: vec3, radius: ti.f32, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Intersect a ray with a sphere given by center and radius."""
    oc = ray.origin - center

    a = tm.dot(ray.direction, ray.direction)
    h = tm.dot(ray.direction, oc)
    c = tm.dot(oc, oc) - radius * radius

    discriminant = h * h - a * c

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)

        # Nearer root first
        t = (-h - sqrt_d) / a
        valid = (t > t_min) and (t < t_max)

        if not valid:
            t = (-h + sqrt_d) / a
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray.origin + t * ray.direction

            outward_normal = (hit_point - center) / radius

            if tm.dot(ray.direction, outward_normal) > 0.0:
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
    )


@ti.func
def hit_sphere(ray: Ray, sphere: Sphere, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray-sphere intersection.

    Args:
        ray: The ray to test.
        sphere: The sphere to test intersection against.
        t_min: Minimum t value to consider a valid hit (exclusive).
        t_max: Maximum t value to consider a valid hit (exclusive).

    Returns:
        A HitRecord containing intersection information. Check hit field
        to determine if intersection occurred.
    """
    return _hit_sphere_at(ray, sphere.center, sphere.radius, t_min, t_max)


@ti.func
def center_at(sphere: MovingSphere, time: ti.f32) -> vec3:
    """Center of a moving sphere at the given time.

    Linear interpolation between (center0, time0) and (center1, time1). Times
    outside the interval extrapolate along the same line. A zero-length
    interval returns center0.
    """
    center = sphere.center0
    span = sphere.time1 - sphere.time0
    if span != 0.0:
        center = sphere.center0 + ((time - sphere.time0) / span) * (sphere.center1 - sphere.center0)
    return center


@ti.func
def hit_moving_sphere(ray: Ray, sphere: MovingSphere, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray intersection with a moving sphere at the ray's time.

    Args:
        ray: The ray to test. Its time selects the sphere's position.
        sphere: The moving sphere.
        t_min: Minimum t value to consider a valid hit (exclusive).
        t_max: Maximum t value to consider a valid hit (exclusive).

    Returns:
        A HitRecord containing intersection information.
    """
    return _hit_sphere_at(ray, center_at(sphere, ray.time), sphere.radius, t_min, t_max)


# =============================================================================
# Host-side descriptions
# =============================================================================


@dataclass
class SphereInfo:
    """Host-side description of a static sphere.

    Attributes:
        center: Center of the sphere.
        radius: Radius (may be negative for hollow shells).
        material_id: Unified material ID.
    """

    center: tuple[float, float, float]
    radius: float
    material_id: int = 0

    def bounding_box(self, time0: float, time1: float) -> Aabb:
        """Box around the sphere. Static spheres ignore the time range."""
        return Aabb.around_sphere(self.center, self.radius)


@dataclass
class MovingSphereInfo:
    """Host-side description of a linearly moving sphere.

    Attributes:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion.
        time1: End of the motion.
        radius: Radius of the sphere.
        material_id: Unified material ID.
    """

    center0: tuple[float, float, float]
    center1: tuple[float, float, float]
    time0: float
    time1: float
    radius: float
    material_id: int = 0

    def center_at(self, time: float) -> npt.NDArray[np.float64]:
        """Center of the sphere at the given time (host mirror of ``center_at``)."""
        c0 = np.asarray(self.center0, dtype=np.float64)
        c1 = np.asarray(self.center1, dtype=np.float64)
        span = self.time1 - self.time0
        if span == 0.0:
            return c0
        return c0 + ((time - self.time0) / span) * (c1 - c0)

    def bounding_box(self, time0: float, time1: float) -> Aabb:
        """Box around the sphere over the time range [time0, time1].

        The motion is linear, so the union of the boxes at both ends of the
        range contains the sphere at every time in between.
        """
        box0 = Aabb.around_sphere(self.center_at(time0), self.radius)
        box1 = Aabb.around_sphere(self.center_at(time1), self.radius)
        return surrounding_box(box0, box1)
