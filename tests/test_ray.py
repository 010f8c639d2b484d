"""Unit tests for the ray module.

Tests cover:
- Ray dataclass and ray_at function
- Vector utility functions (reflect, refract, Schlick reflectance)
- Random sampling functions for Monte Carlo
"""

import numpy as np
import pytest
import taichi as ti


class TestRayBasics:
    """Tests for Ray dataclass and basic operations."""

    def test_ray_at_origin(self):
        """Test ray_at returns origin when t=0."""
        from pathtracer.core.ray import make_ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 2.0, 3.0), vec3(0.0, 0.0, -1.0), 0.0)
            result[None] = ray_at(ray, 0.0)

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [1.0, 2.0, 3.0], atol=1e-6)

    def test_ray_at_does_not_normalize(self):
        """The direction is used as given, so t scales its length."""
        from pathtracer.core.ray import Ray, ray_at, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            ray = Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(2.0, 0.0, 0.0), time=0.0)
            result[None] = ray_at(ray, 1.5)

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [3.0, 0.0, 0.0], atol=1e-6)

    def test_make_ray_keeps_time(self):
        """Test make_ray stores the ray time."""
        from pathtracer.core.ray import make_ray, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0), vec3(0.0, 0.0, 1.0), 0.75)
            result[None] = ray.time

        test_kernel()
        assert abs(result[None] - 0.75) < 1e-6


class TestReflectRefract:
    """Tests for reflection and refraction helpers."""

    def test_reflect(self):
        """Reflecting off a horizontal surface flips the y component."""
        from pathtracer.core.ray import reflect, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [1.0, 1.0, 0.0], atol=1e-6)

    def test_refract_straight_through(self):
        """Normal incidence passes straight through for any ratio."""
        from pathtracer.core.ray import refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = refract(vec3(0.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [0.0, -1.0, 0.0], atol=1e-6)

    def test_refract_follows_snell(self):
        """sin(theta_t) = eta * sin(theta_i)."""
        from pathtracer.core.ray import normalize, refract, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            incident = normalize(vec3(1.0, -1.0, 0.0))
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        r = result[None].to_numpy()
        sin_i = np.sqrt(0.5)
        sin_t = abs(r[0]) / np.linalg.norm(r)
        assert abs(sin_t - sin_i / 1.5) < 1e-5
        assert r[1] < 0.0


class TestSchlick:
    """Tests for Schlick's reflectance approximation."""

    @pytest.mark.parametrize("ref_idx", [1.5, 1.0 / 1.5, 2.4])
    def test_normal_incidence_is_r0(self, ref_idx):
        """R(1) = R0 = ((1 - n) / (1 + n))^2."""
        from pathtracer.core.ray import schlick_fresnel

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(n: ti.f32):
            result[None] = schlick_fresnel(1.0, n)

        test_kernel(ref_idx)
        r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
        assert abs(result[None] - r0) < 1e-6

    @pytest.mark.parametrize("ref_idx", [1.5, 1.0 / 1.5, 2.4])
    def test_grazing_incidence_is_one(self, ref_idx):
        """R(0) = 1."""
        from pathtracer.core.ray import schlick_fresnel

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(n: ti.f32):
            result[None] = schlick_fresnel(0.0, n)

        test_kernel(ref_idx)
        assert abs(result[None] - 1.0) < 1e-6


class TestRandomSampling:
    """Tests for the random direction samplers."""

    def test_random_in_unit_sphere(self):
        """All points lie strictly inside the unit sphere."""
        from pathtracer.core.ray import length, random_in_unit_sphere
        from pathtracer.core.sampler import seed_sampler

        n = 1000
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                rng = seed_sampler(0, i, 0)
                p, rng = random_in_unit_sphere(rng)
                lengths[i] = length(p)

        test_kernel()
        assert np.all(lengths.to_numpy() < 1.0)

    def test_random_unit_vector(self):
        """All vectors have unit length."""
        from pathtracer.core.ray import length, random_unit_vector
        from pathtracer.core.sampler import seed_sampler

        n = 1000
        lengths = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                rng = seed_sampler(1, i, 0)
                v, rng = random_unit_vector(rng)
                lengths[i] = length(v)

        test_kernel()
        np.testing.assert_allclose(lengths.to_numpy(), 1.0, atol=1e-5)

    def test_random_on_hemisphere(self):
        """All vectors lie in the normal's hemisphere."""
        from pathtracer.core.ray import dot, random_on_hemisphere, vec3
        from pathtracer.core.sampler import seed_sampler

        n = 1000
        dots = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            normal = vec3(0.0, 0.0, 1.0)
            for i in range(n):
                rng = seed_sampler(2, i, 0)
                v, rng = random_on_hemisphere(normal, rng)
                dots[i] = dot(v, normal)

        test_kernel()
        assert np.all(dots.to_numpy() >= 0.0)

    def test_random_in_unit_disk(self):
        """All points lie inside the unit disk in the xy-plane."""
        from pathtracer.core.ray import random_in_unit_disk
        from pathtracer.core.sampler import seed_sampler

        n = 1000
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                rng = seed_sampler(3, i, 0)
                p, rng = random_in_unit_disk(rng)
                points[i] = p

        test_kernel()
        p = points.to_numpy()
        assert np.all(p[:, 0] ** 2 + p[:, 1] ** 2 < 1.0)
        assert np.all(p[:, 2] == 0.0)
