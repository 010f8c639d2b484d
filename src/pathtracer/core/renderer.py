"""Renderer that turns a built scene and a camera into an image.

The image is rendered in bands of rows. Each band is one kernel launch, so
progress can be reported between bands through a callback, a generator or
a tqdm progress bar. Every pixel of every band receives the average of the
scene's ``samples_per_pixel`` samples, and the scene's ``max_depth`` bounds
each path.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.renderer import Renderer
    >>> from pathtracer.scene.random_scene import create_single_sphere_scene
    >>>
    >>> scene, camera = create_single_sphere_scene()
    >>> scene.build(seed=0)
    >>> renderer = Renderer(scene, camera, 400, 225, seed=7)
    >>> for rows_done, total in renderer.render_progressive():
    ...     print(f"{rows_done}/{total} rows")
    >>> renderer.save_image("sphere.png")
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt
from tqdm import tqdm

from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera
from pathtracer.core.integrator import get_image_numpy, render_rows, setup_render_target
from pathtracer.core.sampler import normalize_seed
from pathtracer.preview.export import image_to_uint8, save_png, write_ppm
from pathtracer.scene.manager import SceneManager
from pathtracer.scene.sky import setup_sky

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (rows_done, total_rows)
ProgressCallback = Callable[[int, int], None]

DEFAULT_ROWS_PER_TASK = 16


class Renderer:
    """Band-by-band renderer for one scene, camera and image size.

    The renderer delegates to the global integrator buffers (which are
    Taichi fields), so the most recently prepared renderer owns the image.

    Attributes:
        scene: The scene to render. It must be built before rendering.
        camera: The camera configuration.
        seed: Render seed. The same seed reproduces the same image.
        rows_per_task: Number of image rows per kernel launch.
    """

    def __init__(
        self,
        scene: SceneManager,
        camera: ThinLensCamera,
        width: int,
        height: int,
        *,
        seed: int = 0,
        rows_per_task: int = DEFAULT_ROWS_PER_TASK,
    ) -> None:
        """Initialize the renderer.

        Args:
            scene: The scene to render.
            camera: The camera configuration.
            width: Image width in pixels (max 2048).
            height: Image height in pixels (max 2048).
            seed: Render seed.
            rows_per_task: Number of image rows per kernel launch.

        Raises:
            ValueError: If dimensions are out of range or rows_per_task < 1.
        """
        if width < 1 or height < 1:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
        if rows_per_task < 1:
            raise ValueError(f"rows_per_task must be >= 1, got {rows_per_task}")
        self.scene = scene
        self.camera = camera
        self.seed = seed
        self.rows_per_task = rows_per_task
        self._width = width
        self._height = height
        self._rendered = False

    @property
    def width(self) -> int:
        """Get the image width."""
        return self._width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self._height

    def _prepare(self) -> None:
        """Upload the camera, background and render target."""
        if not self.scene.is_built:
            raise RuntimeError("Scene not built. Call scene.build() before rendering.")
        bvh = self.scene.bvh
        shutter = (self.camera.time0, self.camera.time1)
        # Moving sphere boxes only cover the time range the BVH was built for
        if min(shutter) < min(bvh.time0, bvh.time1) or max(shutter) > max(bvh.time0, bvh.time1):
            raise ValueError(
                f"Camera shutter [{self.camera.time0}, {self.camera.time1}] is outside the "
                f"BVH time range [{bvh.time0}, {bvh.time1}]. "
                "Call scene.build(camera.time0, camera.time1) before rendering."
            )
        setup_camera(self.camera)
        setup_sky(self.scene.sky)
        setup_render_target(self._width, self._height)
        self._rendered = False

    def render_progressive(self) -> Generator[tuple[int, int], None, None]:
        """Render the image band by band, yielding progress after each band.

        Yields:
            Tuple of (rows_done, total_rows).

        Raises:
            RuntimeError: If the scene has not been built.
            ValueError: If the camera shutter is outside the BVH time range.
        """
        self._prepare()
        seed = normalize_seed(self.seed)
        spp = self.scene.samples_per_pixel
        depth = self.scene.max_depth

        logger.info(
            "Rendering %dx%d at %d spp (max depth %d, seed %d)",
            self._width,
            self._height,
            spp,
            depth,
            seed,
        )
        start = time.perf_counter()

        for row_start in range(0, self._height, self.rows_per_task):
            row_end = min(row_start + self.rows_per_task, self._height)
            render_rows(row_start, row_end, spp, depth, seed)
            yield (row_end, self._height)

        self._rendered = True
        logger.info("Render finished in %.2fs", time.perf_counter() - start)

    def render(
        self,
        callback: ProgressCallback | None = None,
        show_progress: bool = False,
    ) -> npt.NDArray[np.float32]:
        """Render the whole image.

        Args:
            callback: Optional callback called after each band.
                Receives (rows_done, total_rows).
            show_progress: Show a tqdm progress bar over the rows.

        Returns:
            Averaged linear colors of shape (height, width, 3), top row first.

        Raises:
            RuntimeError: If the scene has not been built.
            ValueError: If the camera shutter is outside the BVH time range.
        """
        with tqdm(total=self._height, unit="row", disable=not show_progress) as bar:
            for rows_done, total in self.render_progressive():
                bar.update(rows_done - bar.n)
                if callback is not None:
                    callback(rows_done, total)
        return self.get_image_numpy()

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Get the rendered image as a NumPy array.

        Returns:
            NumPy array of shape (height, width, 3) with dtype float32,
            linear and unclamped.

        Raises:
            RuntimeError: If nothing has been rendered yet.
        """
        if not self._rendered:
            raise RuntimeError("Nothing rendered yet. Call render() first.")
        return get_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Get the rendered image gamma corrected and quantized to 8 bits."""
        return image_to_uint8(self.get_image_numpy())

    def save_image(self, filepath: str | os.PathLike[str]) -> None:
        """Save the rendered image to a file.

        Files ending in ``.ppm`` are written as plain-text PPM, anything else
        goes through Pillow.

        Args:
            filepath: Path to save the image (e.g., "output.png").
        """
        image = self.get_image_numpy()
        if os.fspath(filepath).lower().endswith(".ppm"):
            write_ppm(image, filepath)
        else:
            save_png(image, filepath)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"samples={self.scene.samples_per_pixel}, seed={self.seed})"
        )


def render(
    scene: SceneManager,
    camera: ThinLensCamera,
    width: int,
    height: int,
    *,
    seed: int = 0,
    rows_per_task: int = DEFAULT_ROWS_PER_TASK,
    callback: ProgressCallback | None = None,
    show_progress: bool = False,
) -> npt.NDArray[np.float32]:
    """Render a built scene through a camera.

    Args:
        scene: The built scene.
        camera: The camera configuration.
        width: Image width in pixels (max 2048).
        height: Image height in pixels (max 2048).
        seed: Render seed. The same seed reproduces the same image.
        rows_per_task: Number of image rows per kernel launch.
        callback: Optional callback called after each band with
            (rows_done, total_rows).
        show_progress: Show a tqdm progress bar over the rows.

    Returns:
        Averaged linear colors of shape (height, width, 3), top row first.

    Raises:
        RuntimeError: If the scene has not been built.
        ValueError: If dimensions are out of range, rows_per_task < 1 or the
            camera shutter is outside the BVH time range.
    """
    renderer = Renderer(scene, camera, width, height, seed=seed, rows_per_task=rows_per_task)
    return renderer.render(callback=callback, show_progress=show_progress)
