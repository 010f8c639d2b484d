"""Taichi-based Monte Carlo path tracer for sphere scenes.

This package renders scenes of static and moving spheres with Taichi, with
support for:
- Path tracing with a bounded number of bounces
- Lambertian, metal and dielectric materials with solid, checker and
  Perlin-noise textures
- A bounding volume hierarchy over the scene
- A thin-lens camera with depth of field and motion blur
- Reproducible, seeded rendering in parallel bands of rows

Subpackages:
    core: Rays, random sampling, the integrator and the renderer
    geometry: Bounding boxes, spheres and the BVH
    materials: Textures and scattering models
    scene: Scene management, intersection, background and demo scenes
    camera: Thin-lens camera with ray generation
    preview: Gamma correction and image export
"""

__version__ = "0.1.0"
