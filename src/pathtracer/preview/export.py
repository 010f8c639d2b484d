"""Image export utilities for rendered images.

This module turns averaged linear colors into 8-bit pixels and writes them
to files.

Color conversion per channel:
    1. gamma: sqrt of the linear value (negative values clamp to 0)
    2. quantize: int(256 * clamp(value, 0.0, 0.999))

Supported formats:
    - PPM (plain-text P3)
    - PNG (8-bit via Pillow)

Example:
    >>> from pathtracer.core.renderer import render
    >>> from pathtracer.preview.export import write_ppm
    >>>
    >>> image = render(scene, camera, 400, 225)
    >>> write_ppm(image, "output.ppm")
"""

from __future__ import annotations

import os
from typing import TextIO

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage


def gamma_correct(image: npt.NDArray[np.floating]) -> npt.NDArray[np.float64]:
    """Apply gamma 2 (square root) to linear colors.

    Args:
        image: Linear image array of any shape.

    Returns:
        Array of the same shape with sqrt applied per channel.
    """
    return np.sqrt(np.maximum(np.asarray(image, dtype=np.float64), 0.0))


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to 8-bit values.

    Args:
        image: Linear image array of shape (H, W, 3).

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    corrected = gamma_correct(image)
    # Non-finite values become 0 before quantization
    corrected = np.nan_to_num(corrected, nan=0.0, posinf=0.0, neginf=0.0)
    return (256.0 * np.clip(corrected, 0.0, 0.999)).astype(np.uint8)


def _check_image_shape(image: npt.NDArray[np.floating]) -> None:
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image.shape}")


def format_ppm(image: npt.NDArray[np.floating]) -> str:
    """Format an image as plain-text PPM (P3).

    Args:
        image: Linear image array of shape (H, W, 3), top row first.

    Returns:
        The PPM text: the header then one "r g b" line per pixel.

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    _check_image_shape(image)
    height, width, _ = image.shape
    pixels = image_to_uint8(image).reshape(-1, 3)

    lines = [f"P3\n{width} {height}\n255"]
    lines.extend(f"{r} {g} {b}" for r, g, b in pixels.tolist())
    return "\n".join(lines) + "\n"


def write_ppm(image: npt.NDArray[np.floating], output: str | os.PathLike[str] | TextIO) -> None:
    """Write an image as plain-text PPM (P3).

    Args:
        image: Linear image array of shape (H, W, 3), top row first.
        output: File path or an open text stream.

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    text = format_ppm(image)
    if isinstance(output, (str, os.PathLike)):
        with open(output, "w", encoding="ascii") as f:
            f.write(text)
    else:
        output.write(text)


def save_png(image: npt.NDArray[np.floating], filepath: str | os.PathLike[str]) -> None:
    """Save a linear image as an 8-bit PNG file.

    Args:
        image: Linear image array of shape (H, W, 3), top row first.
        filepath: Output file path (should end in .png).

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    _check_image_shape(image)
    pil_image = PILImage.fromarray(image_to_uint8(image), mode="RGB")
    pil_image.save(filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
