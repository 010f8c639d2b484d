"""Tests for the demo scene factories."""

import numpy as np
import pytest


class TestSingleSphereScene:
    """Tests for the single diffuse sphere."""

    @pytest.mark.parametrize("ground, count", [(True, 2), (False, 1)])
    def test_primitive_count(self, ground, count):
        from pathtracer.scene.random_scene import create_single_sphere_scene

        scene, camera = create_single_sphere_scene(ground=ground)
        assert scene.get_primitive_count() == count
        assert not scene.is_built
        assert camera.lookat == (0.0, 0.0, -1.0)
        assert camera.vfov == 90.0


class TestThreeSpheresScene:
    """Tests for the diffuse, glass and metal spheres."""

    def test_hollow_glass(self):
        from pathtracer.scene.manager import MaterialType
        from pathtracer.scene.random_scene import create_three_spheres_scene

        scene, _ = create_three_spheres_scene()
        assert scene.get_primitive_count() == 5

        shells = [p for p in scene.primitives if tuple(p.center) == (-1.0, 0.0, -1.0)]
        assert sorted(p.radius for p in shells) == [-0.45, 0.5]
        assert shells[0].material_id == shells[1].material_id
        assert scene.get_material_type_python(shells[0].material_id) == MaterialType.DIELECTRIC

    def test_builds(self):
        from pathtracer.scene.random_scene import create_three_spheres_scene

        scene, camera = create_three_spheres_scene()
        bvh = scene.build(camera.time0, camera.time1, seed=0)
        assert bvh.node_count == 9


class TestRandomScene:
    """Tests for the random sphere field."""

    def test_same_seed_same_scene(self):
        from pathtracer.scene.random_scene import create_random_scene

        first, _ = create_random_scene(seed=42)
        first_dict = first.to_dict()
        second, _ = create_random_scene(seed=42)
        assert second.to_dict() == first_dict

        third, _ = create_random_scene(seed=43)
        assert third.to_dict() != first_dict

    def test_moving_spheres(self):
        from pathtracer.geometry.sphere import MovingSphereInfo
        from pathtracer.scene.random_scene import SMALL_RADIUS, create_random_scene

        scene, camera = create_random_scene(seed=1, moving=True)
        moving = [p for p in scene.primitives if isinstance(p, MovingSphereInfo)]
        assert moving
        for sphere in moving:
            assert sphere.radius == SMALL_RADIUS
            assert (sphere.time0, sphere.time1) == (0.0, 1.0)
            rise = np.asarray(sphere.center1) - np.asarray(sphere.center0)
            assert rise[0] == 0.0 and rise[2] == 0.0
            assert 0.0 <= rise[1] <= 0.5
        assert (camera.time0, camera.time1) == (0.0, 1.0)

    def test_static_spheres(self):
        from pathtracer.geometry.sphere import MovingSphereInfo
        from pathtracer.scene.random_scene import create_random_scene

        scene, _ = create_random_scene(seed=1, moving=False)
        assert not any(isinstance(p, MovingSphereInfo) for p in scene.primitives)

    def test_layout(self):
        from pathtracer.geometry.sphere import MovingSphereInfo
        from pathtracer.scene.random_scene import GRID_EXTENT, create_random_scene

        scene, camera = create_random_scene(seed=7)
        radii = [p.radius for p in scene.primitives]
        assert radii[0] == 1000.0
        assert radii[-3:] == [1.0, 1.0, 1.0]
        assert len(scene.primitives) <= 4 + (2 * GRID_EXTENT) ** 2

        clearance = np.array([4.0, 0.2, 0.0])
        for sphere in scene.primitives[1:-3]:
            center = sphere.center0 if isinstance(sphere, MovingSphereInfo) else sphere.center
            assert np.linalg.norm(np.asarray(center) - clearance) > 0.9

        assert camera.aperture == 0.1
        assert camera.focus_dist == 10.0

    def test_checkered_ground(self):
        from pathtracer.scene.random_scene import create_random_scene

        scene, _ = create_random_scene(seed=0)
        assert scene.textures[0]["type"] == "checker"
        assert scene.get_material_info(0).params["texture_id"] == 0

    def test_tiny_render(self):
        from pathtracer.core.renderer import render
        from pathtracer.scene.random_scene import create_random_scene

        scene, camera = create_random_scene(seed=3, aspect_ratio=2.0)
        scene.set_render_params(max_depth=5, samples_per_pixel=1)
        scene.build(camera.time0, camera.time1, seed=3)
        image = render(scene, camera, 8, 4, seed=3)
        assert image.shape == (4, 8, 3)
        assert np.all(np.isfinite(image))
