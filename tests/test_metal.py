"""Unit tests for the Metal material module.

Tests cover:
- Perfect mirror reflection (fuzz=0) is deterministic
- Fuzzy reflection (fuzz>0) varies between samples
- Absorption when the scattered ray points into the surface
- Attenuation equals the albedo
- Material registry operations and fuzz validation
"""

import numpy as np
import pytest
import taichi as ti


class TestPerfectReflection:
    """Tests for mirror reflection (fuzz=0)."""

    def test_normal_incidence(self):
        """A ray hitting head-on reflects straight back."""
        from pathtracer.core.sampler import seed_sampler
        from pathtracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())
        result_atten = ti.Vector.field(3, dtype=ti.f32, shape=())
        result_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(0.8, 0.6, 0.2)
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, attenuation, did_scatter, _ = scatter_metal(
                albedo, 0.0, incident, normal, seed_sampler(0, 0, 0)
            )
            result_dir[None] = direction
            result_atten[None] = attenuation
            result_scatter[None] = did_scatter

        test_kernel()
        np.testing.assert_allclose(result_dir[None].to_numpy(), [0.0, 1.0, 0.0], atol=1e-5)
        np.testing.assert_allclose(result_atten[None].to_numpy(), [0.8, 0.6, 0.2], atol=1e-6)
        assert result_scatter[None] == 1

    def test_fuzz_zero_is_deterministic(self):
        """Without fuzz every sample gives the mirror direction."""
        from pathtracer.core.sampler import seed_sampler
        from pathtracer.materials.metal import scatter_metal

        n = 64
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(1.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            for i in range(n):
                direction, _, _, _ = scatter_metal(
                    ti.math.vec3(1.0), 0.0, incident, normal, seed_sampler(0, i, 0)
                )
                directions[i] = direction

        test_kernel()
        d = directions.to_numpy()
        expected = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
        np.testing.assert_allclose(d, np.tile(expected, (n, 1)), atol=1e-5)


class TestFuzzyReflection:
    """Tests for fuzzy reflection."""

    def test_fuzz_one_varies(self):
        """Full fuzz perturbs the mirror direction differently per sample."""
        from pathtracer.core.sampler import seed_sampler
        from pathtracer.materials.metal import scatter_metal

        n = 64
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            for i in range(n):
                direction, _, _, _ = scatter_metal(
                    ti.math.vec3(1.0), 1.0, incident, normal, seed_sampler(0, i, 0)
                )
                directions[i] = direction

        test_kernel()
        d = directions.to_numpy()
        assert np.std(d[:, 0]) > 0.1
        # The perturbation stays within the unit sphere around the mirror direction
        offsets = d - np.array([0.0, 1.0, 0.0])
        assert np.all(np.linalg.norm(offsets, axis=1) < 1.0 + 1e-5)

    def test_absorbed_below_surface(self):
        """A mirror direction into the surface is absorbed."""
        from pathtracer.core.sampler import seed_sampler
        from pathtracer.materials.metal import scatter_metal

        result_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            # Leaving the surface along the normal reflects into it
            incident = ti.math.vec3(0.0, 1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            _, _, did_scatter, _ = scatter_metal(
                ti.math.vec3(1.0), 0.0, incident, normal, seed_sampler(0, 0, 0)
            )
            result_scatter[None] = did_scatter

        test_kernel()
        assert result_scatter[None] == 0

    def test_grazing_fuzz_absorbs_some(self):
        """Near-grazing fuzzy reflections are partly absorbed."""
        from pathtracer.core.sampler import seed_sampler
        from pathtracer.materials.metal import scatter_metal

        n = 256
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(1.0, -0.01, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            for i in range(n):
                _, _, did_scatter, _ = scatter_metal(
                    ti.math.vec3(1.0), 1.0, incident, normal, seed_sampler(1, i, 0)
                )
                scattered[i] = did_scatter

        test_kernel()
        s = scattered.to_numpy()
        assert 0 < s.sum() < n


class TestMetalRegistry:
    """Tests for the metal material registry."""

    def test_add_and_count(self):
        from pathtracer.materials.metal import add_metal_material, get_metal_material_count

        assert add_metal_material((0.8, 0.6, 0.2), 0.3) == 0
        assert add_metal_material((0.5, 0.5, 0.5)) == 1
        assert get_metal_material_count() == 2

    def test_fuzz_clamped_to_one(self):
        from pathtracer.materials.metal import add_metal_material, get_metal_fuzz

        idx = add_metal_material((0.5, 0.5, 0.5), fuzz=3.0)
        assert get_metal_fuzz(idx) == 1.0

    def test_negative_fuzz_raises(self):
        from pathtracer.materials.metal import add_metal_material

        with pytest.raises(ValueError, match="negative"):
            add_metal_material((0.5, 0.5, 0.5), fuzz=-0.1)

    def test_invalid_albedo_raises(self):
        from pathtracer.materials.metal import add_metal_material

        with pytest.raises(ValueError, match="outside"):
            add_metal_material((0.5, -0.1, 0.5))
