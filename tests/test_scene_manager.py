"""Unit tests for the SceneManager.

Tests cover:
- Material registration (Lambertian, Metal, Dielectric) and textures
- Material type tracking and lookup
- Primitive addition with materials
- Render parameters and background
- BVH building and invalidation
- Scene serialization (to_config, from_config, to_dict, from_dict)
- GPU-side material type dispatch
"""

import json

import pytest
import taichi as ti


@pytest.fixture
def fresh_scene():
    """Create a fresh SceneManager for each test."""
    from pathtracer.scene.manager import SceneManager

    scene = SceneManager()
    yield scene
    scene.clear()


class TestMaterialRegistration:
    """Tests for material registration."""

    def test_add_lambertian_material(self, fresh_scene):
        mat_id = fresh_scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
        assert mat_id == 0
        assert fresh_scene.get_material_count() == 1
        # The albedo is stored as a solid texture
        assert fresh_scene.textures == [{"type": "solid", "color": [0.8, 0.3, 0.3]}]

    def test_add_textured_lambertian(self, fresh_scene):
        checker = fresh_scene.add_checker_texture((0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        mat_id = fresh_scene.add_lambertian_material(texture_id=checker)
        info = fresh_scene.get_material_info(mat_id)
        assert info.params == {"texture_id": checker, "hemispherical": False}

    def test_add_multiple_materials(self, fresh_scene):
        """Material IDs are shared across types."""
        from pathtracer.scene.manager import MaterialType

        id0 = fresh_scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
        id1 = fresh_scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.0)
        id2 = fresh_scene.add_dielectric_material(ior=1.5)
        id3 = fresh_scene.add_lambertian_material(albedo=(0.1, 0.8, 0.1))

        assert [id0, id1, id2, id3] == [0, 1, 2, 3]
        assert fresh_scene.get_material_count() == 4
        assert fresh_scene.get_material_type_python(id1) == MaterialType.METAL
        assert fresh_scene.get_material_type_python(id2) == MaterialType.DIELECTRIC
        # Type-local indices restart per type
        assert fresh_scene.get_material_info(id3).type_index == 1
        assert fresh_scene.get_material_info(99) is None
        assert fresh_scene.get_material_type_python(99) is None

    def test_metal_fuzz_clamped_in_params(self, fresh_scene):
        mat_id = fresh_scene.add_metal_material(albedo=(0.5, 0.5, 0.5), fuzz=2.0)
        assert fresh_scene.get_material_info(mat_id).params["fuzz"] == 1.0

    def test_material_validation(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_lambertian_material(albedo=(1.5, 0.0, 0.0))
        with pytest.raises(ValueError):
            fresh_scene.add_lambertian_material()
        with pytest.raises(ValueError):
            fresh_scene.add_metal_material(albedo=(-0.1, 0.5, 0.5))
        with pytest.raises(ValueError):
            fresh_scene.add_metal_material(albedo=(0.8, 0.8, 0.8), fuzz=-0.1)
        with pytest.raises(ValueError):
            fresh_scene.add_dielectric_material(ior=0.5)


class TestMaterialDispatch:
    """Tests for kernel-side material lookups."""

    def test_gpu_material_type_lookup(self, fresh_scene):
        from pathtracer.scene.manager import MaterialType, get_material_type, get_material_type_index

        fresh_scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        fresh_scene.add_metal_material(albedo=(0.5, 0.5, 0.5))
        fresh_scene.add_metal_material(albedo=(0.9, 0.9, 0.9))
        fresh_scene.add_dielectric_material()

        types = ti.field(dtype=ti.i32, shape=5)
        indices = ti.field(dtype=ti.i32, shape=5)

        @ti.kernel
        def test_kernel():
            for i in range(5):
                types[i] = get_material_type(i)
                indices[i] = get_material_type_index(i)

        test_kernel()
        assert types.to_numpy().tolist() == [
            int(MaterialType.LAMBERTIAN),
            int(MaterialType.METAL),
            int(MaterialType.METAL),
            int(MaterialType.DIELECTRIC),
            -1,
        ]
        assert indices.to_numpy().tolist() == [0, 0, 1, 0, -1]


class TestPrimitives:
    """Tests for adding spheres."""

    def test_add_spheres(self, fresh_scene):
        from pathtracer.geometry.sphere import MovingSphereInfo, SphereInfo

        mat = fresh_scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        assert fresh_scene.add_sphere((0, 0, -1), 0.5, mat) == 0
        assert fresh_scene.add_moving_sphere((0, 0, 0), (0, 1, 0), 0.0, 1.0, 0.2, mat) == 1
        assert fresh_scene.get_primitive_count() == 2
        assert isinstance(fresh_scene.primitives[0], SphereInfo)
        assert isinstance(fresh_scene.primitives[1], MovingSphereInfo)

    def test_invalid_material_id_raises(self, fresh_scene):
        with pytest.raises(ValueError, match="Invalid material_id"):
            fresh_scene.add_sphere((0, 0, 0), 1.0, 0)

        mat = fresh_scene.add_dielectric_material()
        with pytest.raises(ValueError, match="Invalid material_id"):
            fresh_scene.add_moving_sphere((0, 0, 0), (1, 0, 0), 0.0, 1.0, 1.0, mat + 1)

    def test_negative_radius_allowed(self, fresh_scene):
        glass = fresh_scene.add_dielectric_material()
        fresh_scene.add_sphere((0, 0, -1), -0.45, glass)
        assert fresh_scene.primitives[0].radius == -0.45

    def test_capacity(self, fresh_scene):
        from pathtracer.scene.manager import SceneManager

        assert SceneManager.get_max_primitives() == 4096
        assert SceneManager.get_max_materials() == 3072


class TestRenderParams:
    """Tests for per-scene render parameters and the background."""

    def test_defaults(self, fresh_scene):
        from pathtracer.scene.sky import GradientSky

        assert fresh_scene.max_depth == 50
        assert fresh_scene.samples_per_pixel == 100
        assert fresh_scene.sky == GradientSky()

    def test_set_render_params(self, fresh_scene):
        fresh_scene.set_render_params(0, 1)
        assert fresh_scene.max_depth == 0
        assert fresh_scene.samples_per_pixel == 1

    @pytest.mark.parametrize("max_depth, spp", [(-1, 10), (10, 0)])
    def test_invalid_render_params(self, fresh_scene, max_depth, spp):
        with pytest.raises(ValueError):
            fresh_scene.set_render_params(max_depth, spp)

    def test_set_sky_uploads(self, fresh_scene):
        from pathtracer.scene.sky import SolidSky, get_sky_info

        fresh_scene.set_sky(SolidSky((1.0, 1.0, 1.0)))
        assert get_sky_info() == {"type": "solid", "color": (1.0, 1.0, 1.0)}


class TestBuild:
    """Tests for building the acceleration structure."""

    def test_build_empty_raises(self, fresh_scene):
        from pathtracer.geometry.bvh import BvhConstructionError

        with pytest.raises(BvhConstructionError):
            fresh_scene.build()
        assert not fresh_scene.is_built

    def test_build_and_invalidate(self, fresh_scene):
        from pathtracer.scene.intersection import get_bvh_node_count

        mat = fresh_scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        fresh_scene.add_sphere((0, 0, -1), 0.5, mat)
        fresh_scene.add_sphere((0, -100.5, -1), 100, mat)

        bvh = fresh_scene.build(seed=0)
        assert fresh_scene.is_built
        assert fresh_scene.bvh is bvh
        assert bvh.node_count == 3
        assert get_bvh_node_count() == 3

        fresh_scene.add_sphere((1, 0, -1), 0.5, mat)
        assert not fresh_scene.is_built
        assert fresh_scene.bvh is None

        fresh_scene.build(seed=0)
        fresh_scene.add_metal_material((0.5, 0.5, 0.5))
        assert not fresh_scene.is_built

    def test_clear(self, fresh_scene):
        mat = fresh_scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        fresh_scene.add_sphere((0, 0, -1), 0.5, mat)
        fresh_scene.build()

        fresh_scene.clear()
        assert fresh_scene.get_material_count() == 0
        assert fresh_scene.get_primitive_count() == 0
        assert fresh_scene.textures == []
        assert not fresh_scene.is_built


class TestSerialization:
    """Tests for scene configuration round trips."""

    def _populate(self, scene):
        from pathtracer.scene.sky import SolidSky

        scene.set_render_params(8, 4)
        scene.set_sky(SolidSky((0.1, 0.2, 0.3)))
        noise = scene.add_noise_texture(scale=4.0, seed=3)
        ground = scene.add_lambertian_material(texture_id=noise)
        red = scene.add_lambertian_material(albedo=(0.8, 0.1, 0.1), hemispherical=True)
        gold = scene.add_metal_material((0.8, 0.6, 0.2), 0.3)
        glass = scene.add_dielectric_material(1.5)
        scene.add_sphere((0, -1000, 0), 1000, ground)
        scene.add_sphere((0, 1, 0), 1.0, glass)
        scene.add_sphere((0, 1, 0), -0.9, glass)
        scene.add_sphere((4, 1, 0), 1.0, gold)
        scene.add_moving_sphere((2, 0.2, 1), (2, 0.6, 1), 0.0, 1.0, 0.2, red)

    def test_config_round_trip(self, fresh_scene):
        from pathtracer.scene.manager import SceneManager

        self._populate(fresh_scene)
        config = fresh_scene.to_config()

        assert len(config.textures) == 2
        assert [m["type"] for m in config.materials] == ["lambertian", "lambertian", "metal", "dielectric"]
        assert len(config.spheres) == 4
        assert len(config.moving_spheres) == 1
        assert config.sky == {"type": "solid", "color": [0.1, 0.2, 0.3]}

        restored = SceneManager()
        restored.from_config(config)
        assert restored.to_config() == config
        assert restored.max_depth == 8
        assert restored.samples_per_pixel == 4

    def test_dict_is_json_serializable(self, fresh_scene):
        from pathtracer.scene.manager import SceneManager

        self._populate(fresh_scene)
        data = json.loads(json.dumps(fresh_scene.to_dict()))

        restored = SceneManager()
        restored.from_dict(data)
        assert restored.to_dict() == fresh_scene.to_dict()

    def test_from_dict_defaults(self, fresh_scene):
        fresh_scene.from_dict({})
        assert fresh_scene.max_depth == 50
        assert fresh_scene.samples_per_pixel == 100
        assert fresh_scene.get_material_count() == 0

    @pytest.mark.parametrize(
        "data",
        [
            {"materials": [{"type": "plastic"}]},
            {"textures": [{"type": "marble"}]},
            {"sky": {"type": "starfield"}},
        ],
    )
    def test_unknown_types_raise(self, fresh_scene, data):
        with pytest.raises(ValueError, match="Unknown"):
            fresh_scene.from_dict(data)
