"""Demo scene configurations.

This module provides factory functions for the demo scenes:

- a single diffuse sphere resting on a huge ground sphere,
- three spheres (diffuse, hollow glass, metal) on a ground,
- the random "cover" scene: a checkered ground with a grid of small random
  spheres and three large feature spheres, seen through a lens with a
  little defocus blur. Diffuse spheres may bounce upward while the shutter
  is open.

Every factory returns an unbuilt scene and its camera. Build the scene over
the camera's shutter interval before rendering.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.renderer import render
    >>> from pathtracer.scene.random_scene import create_random_scene
    >>>
    >>> scene, camera = create_random_scene(seed=42)
    >>> scene.build(camera.time0, camera.time1, seed=42)
    >>> image = render(scene, camera, 400, 225)
"""

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.scene.manager import SceneManager
from pathtracer.scene.sky import GradientSky

# Small spheres are placed on a GRID_EXTENT x GRID_EXTENT grid around the origin
GRID_EXTENT = 11
SMALL_RADIUS = 0.2


def create_single_sphere_scene(
    ground: bool = True,
    aspect_ratio: float = 16.0 / 9.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create a diffuse sphere at (0, 0, -1) seen from the origin.

    Args:
        ground: Add the ground sphere of radius 100 below it.
        aspect_ratio: Camera aspect ratio (width / height).

    Returns:
        Tuple of (scene, camera).
    """
    scene = SceneManager(sky=GradientSky())

    diffuse = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
    scene.add_sphere((0.0, 0.0, -1.0), 0.5, diffuse)
    if ground:
        scene.add_sphere((0.0, -100.5, -1.0), 100.0, diffuse)

    camera = ThinLensCamera(
        lookfrom=(0.0, 0.0, 0.0),
        lookat=(0.0, 0.0, -1.0),
        vfov=90.0,
        aspect_ratio=aspect_ratio,
    )
    return scene, camera


def create_three_spheres_scene(aspect_ratio: float = 16.0 / 9.0) -> tuple[SceneManager, ThinLensCamera]:
    """Create a diffuse, a hollow glass and a metal sphere on a ground.

    The glass sphere is hollow: a second glass sphere with a negative radius
    sits inside it, so its normals point inward.

    Args:
        aspect_ratio: Camera aspect ratio (width / height).

    Returns:
        Tuple of (scene, camera).
    """
    scene = SceneManager(sky=GradientSky())

    ground = scene.add_lambertian_material(albedo=(0.8, 0.8, 0.0))
    center = scene.add_lambertian_material(albedo=(0.1, 0.2, 0.5))
    glass = scene.add_dielectric_material(ior=1.5)
    metal = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.0)

    scene.add_sphere((0.0, -100.5, -1.0), 100.0, ground)
    scene.add_sphere((0.0, 0.0, -1.0), 0.5, center)
    scene.add_sphere((-1.0, 0.0, -1.0), 0.5, glass)
    scene.add_sphere((-1.0, 0.0, -1.0), -0.45, glass)
    scene.add_sphere((1.0, 0.0, -1.0), 0.5, metal)

    camera = ThinLensCamera(
        lookfrom=(-2.0, 2.0, 1.0),
        lookat=(0.0, 0.0, -1.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
    )
    return scene, camera


def create_random_scene(
    seed: int | None = None,
    moving: bool = True,
    aspect_ratio: float = 16.0 / 9.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random sphere field.

    Args:
        seed: Seed for sphere placement and colors. The same seed gives the
            same scene.
        moving: Let diffuse spheres move upward over the shutter interval.
        aspect_ratio: Camera aspect ratio (width / height).

    Returns:
        Tuple of (scene, camera). The camera shutter is open over [0, 1].
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager(sky=GradientSky())

    checker = scene.add_checker_texture(even=(0.2, 0.3, 0.1), odd=(0.9, 0.9, 0.9), scale=10.0)
    ground = scene.add_lambertian_material(texture_id=checker)
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground)

    clearance_point = np.array([4.0, SMALL_RADIUS, 0.0])

    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choose_mat = rng.random()
            center = np.array([a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random()])

            # Keep the view of the large metal sphere clear
            if np.linalg.norm(center - clearance_point) <= 0.9:
                continue

            if choose_mat < 0.8:
                albedo = rng.random(3) * rng.random(3)
                material = scene.add_lambertian_material(albedo=tuple(albedo.tolist()))
                if moving:
                    center1 = center + np.array([0.0, rng.uniform(0.0, 0.5), 0.0])
                    scene.add_moving_sphere(
                        tuple(center.tolist()),
                        tuple(center1.tolist()),
                        0.0,
                        1.0,
                        SMALL_RADIUS,
                        material,
                    )
                    continue
            elif choose_mat < 0.95:
                albedo = rng.uniform(0.5, 1.0, size=3)
                material = scene.add_metal_material(
                    albedo=tuple(albedo.tolist()),
                    fuzz=float(rng.uniform(0.0, 0.5)),
                )
            else:
                material = scene.add_dielectric_material(ior=1.5)

            scene.add_sphere(tuple(center.tolist()), SMALL_RADIUS, material)

    glass = scene.add_dielectric_material(ior=1.5)
    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)

    brown = scene.add_lambertian_material(albedo=(0.4, 0.2, 0.1))
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, brown)

    steel = scene.add_metal_material(albedo=(0.7, 0.6, 0.5), fuzz=0.0)
    scene.add_sphere((4.0, 1.0, 0.0), 1.0, steel)

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=10.0,
        time0=0.0,
        time1=1.0,
    )
    return scene, camera
