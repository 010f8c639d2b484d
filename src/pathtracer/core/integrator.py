"""Path tracing integrator for Monte Carlo light transport.

This module implements the per-ray color computation and the kernels that
average many camera samples per pixel into the render target.

The color seen along a ray is computed with a bounded number of bounces:

- depth exhausted: black (no more light is gathered),
- the ray hits nothing: the sky color,
- the material absorbs the ray: black,
- the material scatters: attenuation times the color along the scattered ray.

The recursion is evaluated as a loop that multiplies a running throughput by
each attenuation and finally by the sky color when the path escapes.

Every camera sample owns an independent random generator derived from
(seed, pixel index, sample index), so a render is a pure function of the
scene, the camera, the image size and the seed. Two kernels average the
samples:

- ``_render_rows`` loops over the samples of a pixel sequentially, giving
  bitwise-identical images for the same seed.
- ``_render_rows_sample_parallel`` also spreads the samples across threads
  and sums them atomically. The result is reproducible up to the order of
  floating-point additions.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.integrator import render_rows, setup_render_target
    >>> setup_render_target(400, 225)
    >>> render_rows(0, 225, samples_per_pixel=16, max_depth=50, seed=7)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray
from pathtracer.core.ray import Ray, make_ray
from pathtracer.core.sampler import random_f32, seed_sampler
from pathtracer.materials.dielectric import scatter_dielectric_by_id
from pathtracer.materials.lambertian import scatter_lambertian_by_id
from pathtracer.materials.metal import scatter_metal_by_id
from pathtracer.scene.intersection import SceneHitRecord, intersect_scene
from pathtracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)
from pathtracer.scene.sky import sky_color

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum ray bounces accepted by the renderer
MAX_DEPTH = 1000

# t_min and t_max for ray intersection. T_MIN keeps scattered rays, which
# start exactly on the surface, from hitting that surface again.
T_MIN = 0.001
T_MAX = 1e10

# From this many samples per pixel on, samples are also spread across threads
PARALLEL_SAMPLE_THRESHOLD = 64

# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Averaged color per pixel, indexed [i, j] with j = 0 the bottom row
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffer.

    Sets the active image dimensions and clears the buffer. The buffer is
    preallocated to MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT to avoid Taichi
    kernel recompilation.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum
            supported size.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffer to zero."""
    _color_buffer.fill(0.0)


def reset_render_target() -> None:
    """Mark the render target as not set up (used between tests)."""
    _render_target_initialized[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions.

    Returns:
        Tuple of (width, height).
    """
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the averaged linear colors as a NumPy array.

    Returns:
        Array of shape (height, width, 3), dtype float32, ordered top row
        first and left to right within a row. Values are not clamped.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) with bottom-left origin -> (height, width, 3) top-down
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.ascontiguousarray(image, dtype=np.float32)


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(rec: SceneHitRecord, incident_direction: vec3, rng: ti.u32):
    """Dispatch to the appropriate material scattering function.

    Args:
        rec: The scene hit record (point, normal, face, material).
        incident_direction: The incoming ray direction.
        rng: The current generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter, next_state).
        Unknown material IDs absorb the ray.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0
    state = rng

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter, state = scatter_lambertian_by_id(
            type_index, rec.point, rec.normal, state
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter, state = scatter_metal_by_id(
            type_index, incident_direction, rec.normal, state
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter, state = scatter_dielectric_by_id(
            type_index, incident_direction, rec.normal, rec.front_face, state
        )

    return scattered_direction, attenuation, did_scatter, state


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def compute_ray_color(ray: Ray, depth: ti.i32, rng: ti.u32):
    """Compute the color seen along a ray.

    Args:
        ray: The ray to trace.
        depth: Maximum number of scene intersections. 0 returns black.
        rng: The current generator state.

    Returns:
        A tuple of (color, next_state).
    """
    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    current = ray
    state = rng

    # Active flag for path continuation (no break inside ti.func loops)
    active = 1

    for _ in range(depth):
        if active == 1:
            rec = intersect_scene(current, T_MIN, T_MAX)

            if rec.hit == 0:
                color = throughput * sky_color(current.direction)
                active = 0
            else:
                direction, attenuation, did_scatter, state = _scatter_material(
                    rec, current.direction, state
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    # Scattered rays start on the surface and keep the time
                    current = make_ray(rec.point, direction, current.time)

    return color, state


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Replace NaN and infinite channels with zero."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


@ti.func
def sample_pixel(
    i: ti.i32,
    j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    depth: ti.i32,
    rng: ti.u32,
) -> vec3:
    """Trace one jittered camera sample through pixel (i, j).

    Pixel coordinates map to the image plane as
    s = (i + jitter) / (width - 1), t = (j + jitter) / (height - 1).

    Args:
        i: Pixel column (0 = left).
        j: Pixel row (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        depth: Maximum bounce depth.
        rng: Generator state owned by this sample.

    Returns:
        The sample's color with non-finite channels zeroed.
    """
    jitter_s, state = random_f32(rng)
    jitter_t, state = random_f32(state)

    s = (ti.cast(i, ti.f32) + jitter_s) / ti.cast(ti.max(width - 1, 1), ti.f32)
    t = (ti.cast(j, ti.f32) + jitter_t) / ti.cast(ti.max(height - 1, 1), ti.f32)

    ray, state = get_ray(s, t, state)
    color, state = compute_ray_color(ray, depth, state)
    return _sanitize(color)


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows(
    row_start: ti.i32,
    row_count: ti.i32,
    width: ti.i32,
    height: ti.i32,
    samples_per_pixel: ti.i32,
    depth: ti.i32,
    seed: ti.i32,
):
    """Average the samples of every pixel in a band of image rows.

    Rows are counted from the top of the image. Samples of one pixel run
    sequentially in one thread.
    """
    for r, i in ti.ndrange(row_count, width):
        row = row_start + r
        j = height - 1 - row
        pixel_index = row * width + i

        total = vec3(0.0, 0.0, 0.0)
        for s in range(samples_per_pixel):
            rng = seed_sampler(seed, pixel_index, s)
            total += sample_pixel(i, j, width, height, depth, rng)

        _color_buffer[i, j] = total / ti.cast(samples_per_pixel, ti.f32)


@ti.kernel
def _clear_rows(row_start: ti.i32, row_count: ti.i32, width: ti.i32, height: ti.i32):
    """Zero a band of image rows, counted from the top."""
    for r, i in ti.ndrange(row_count, width):
        _color_buffer[i, height - 1 - (row_start + r)] = vec3(0.0, 0.0, 0.0)


@ti.kernel
def _render_rows_sample_parallel(
    row_start: ti.i32,
    row_count: ti.i32,
    width: ti.i32,
    height: ti.i32,
    samples_per_pixel: ti.i32,
    depth: ti.i32,
    seed: ti.i32,
):
    """Average the samples of a band of rows, one thread per sample.

    The band must be cleared beforehand; samples are added atomically.
    """
    inv_spp = 1.0 / ti.cast(samples_per_pixel, ti.f32)
    for r, i, s in ti.ndrange(row_count, width, samples_per_pixel):
        row = row_start + r
        j = height - 1 - row
        pixel_index = row * width + i

        rng = seed_sampler(seed, pixel_index, s)
        _color_buffer[i, j] += sample_pixel(i, j, width, height, depth, rng) * inv_spp


@ti.kernel
def _trace_single_ray(origin: vec3, direction: vec3, time: ti.f32, depth: ti.i32, seed: ti.i32) -> vec3:
    """Trace one ray with a generator seeded from ``seed``."""
    ray = make_ray(origin, direction, time)
    rng = seed_sampler(seed, 0, 0)
    color, rng = compute_ray_color(ray, depth, rng)
    return color


# =============================================================================
# Public Rendering API
# =============================================================================


def render_rows(
    row_start: int,
    row_end: int,
    samples_per_pixel: int,
    max_depth: int,
    seed: int,
) -> None:
    """Render image rows [row_start, row_end), counted from the top.

    Each pixel in the band receives the average of ``samples_per_pixel``
    samples. The camera, sky and scene (including its BVH) must already be
    set up.

    Args:
        row_start: First row of the band (0 = top of the image).
        row_end: One past the last row of the band.
        samples_per_pixel: Number of samples averaged per pixel.
        max_depth: Maximum number of bounces per path.
        seed: Render seed (a non-negative 32-bit integer).

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the band or the sampling parameters are invalid.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    if not 0 <= row_start <= row_end <= height:
        raise ValueError(f"Invalid row band [{row_start}, {row_end}) for height {height}")
    if samples_per_pixel < 1:
        raise ValueError(f"samples_per_pixel must be >= 1, got {samples_per_pixel}")
    if not 0 <= max_depth <= MAX_DEPTH:
        raise ValueError(f"max_depth must be in [0, {MAX_DEPTH}], got {max_depth}")

    row_count = row_end - row_start
    if row_count == 0:
        return

    if samples_per_pixel < PARALLEL_SAMPLE_THRESHOLD:
        _render_rows(row_start, row_count, width, height, samples_per_pixel, max_depth, seed)
    else:
        _clear_rows(row_start, row_count, width, height)
        _render_rows_sample_parallel(
            row_start, row_count, width, height, samples_per_pixel, max_depth, seed
        )


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    time: float = 0.0,
    depth: int = 50,
    seed: int = 0,
) -> tuple[float, float, float]:
    """Trace a single ray through the current scene.

    This is a Python-callable function for testing and debugging. The scene
    BVH and the sky must be set up.

    Args:
        origin: Ray origin.
        direction: Ray direction.
        time: Ray time.
        depth: Maximum number of bounces.
        seed: Seed for the ray's generator.

    Returns:
        Tuple of (R, G, B) color values.
    """
    color = _trace_single_ray(
        vec3(origin[0], origin[1], origin[2]),
        vec3(direction[0], direction[1], direction[2]),
        time,
        depth,
        seed,
    )
    return (float(color[0]), float(color[1]), float(color[2]))
