"""Preview module for image output.

Components:
    export: Gamma correction, 8-bit quantization, PPM and PNG writers
"""

from pathtracer.preview.export import (
    compute_rmse,
    format_ppm,
    gamma_correct,
    image_to_uint8,
    save_png,
    write_ppm,
)

__all__ = [
    "gamma_correct",
    "image_to_uint8",
    "format_ppm",
    "write_ppm",
    "save_png",
    "compute_rmse",
]
