#!/usr/bin/env python3
"""Render one of the demo sphere scenes.

This script demonstrates end-to-end rendering with the path tracer. It
creates the scene, builds its BVH, renders it in bands of rows and writes
the image as PPM or PNG depending on the output extension.

Usage:
    python examples/render_random_scene.py [options]

Options:
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: width / aspect)
    --samples SAMPLES   Number of samples per pixel (default: 100)
    --depth DEPTH       Maximum bounces per path (default: 50)
    --seed SEED         Seed for the scene layout, BVH and samples (default: 0)
    --scene NAME        single, three or random (default: random)
    --output OUTPUT     Output file path, .ppm or .png (default: random_scene.png)
    --arch ARCH         Taichi backend: cpu, gpu or vulkan (default: cpu)
    --quiet             Suppress progress output
    --verbose           Enable debug logging

Example:
    python examples/render_random_scene.py --width 200 --samples 16 --output cover.ppm
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

ASPECT_RATIO = 16.0 / 9.0

ARCHS = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "vulkan": ti.vulkan,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a demo sphere scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--width",
        type=int,
        default=400,
        help="Image width in pixels (default: 400)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Image height in pixels (default: width / aspect ratio)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=100,
        help="Number of samples per pixel (default: 100)",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=50,
        help="Maximum bounces per path (default: 50)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Seed for the scene layout, BVH and samples (default: 0)",
    )
    parser.add_argument(
        "--scene",
        choices=("single", "three", "random"),
        default="random",
        help="Scene to render (default: random)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="random_scene.png",
        help="Output file path, .ppm or .png (default: random_scene.png)",
    )
    parser.add_argument(
        "--arch",
        choices=sorted(ARCHS),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def render_scene(
    scene_name: str = "random",
    width: int = 400,
    height: int | None = None,
    num_samples: int = 100,
    max_depth: int = 50,
    seed: int = 0,
    output_path: str = "random_scene.png",
    quiet: bool = False,
) -> Path:
    """Render a demo scene and save it to a file.

    Args:
        scene_name: single, three or random.
        width: Image width in pixels.
        height: Image height in pixels. None derives it from the aspect ratio.
        num_samples: Number of samples per pixel.
        max_depth: Maximum bounces per path.
        seed: Seed for the scene layout, BVH and samples.
        output_path: Output file path (.ppm or .png).
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from pathtracer.core.renderer import Renderer
    from pathtracer.scene.random_scene import (
        create_random_scene,
        create_single_sphere_scene,
        create_three_spheres_scene,
    )

    if height is None:
        height = max(1, int(width / ASPECT_RATIO))
    aspect_ratio = width / height

    if not quiet:
        print(f"Creating {scene_name} scene ({width}x{height})...")

    if scene_name == "single":
        scene, camera = create_single_sphere_scene(aspect_ratio=aspect_ratio)
    elif scene_name == "three":
        scene, camera = create_three_spheres_scene(aspect_ratio=aspect_ratio)
    else:
        scene, camera = create_random_scene(seed=seed, aspect_ratio=aspect_ratio)

    scene.set_render_params(max_depth=max_depth, samples_per_pixel=num_samples)
    bvh = scene.build(camera.time0, camera.time1, seed=seed)

    if not quiet:
        print(f"  {scene.get_primitive_count()} primitives, {bvh.node_count} BVH nodes")
        print(f"Rendering {num_samples} samples per pixel...")

    start_time = time.time()

    renderer = Renderer(scene, camera, width, height, seed=seed)
    renderer.render(show_progress=not quiet)

    output_file = Path(output_path)
    renderer.save_image(output_file)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    ti.init(arch=ARCHS[args.arch])
    if not args.quiet:
        print(f"Using {args.arch} backend")

    try:
        render_scene(
            scene_name=args.scene,
            width=args.width,
            height=args.height,
            num_samples=args.samples,
            max_depth=args.depth,
            seed=args.seed,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
