"""Counter-based random number generation for per-sample Monte Carlo trials.

Every camera sample owns an independent generator whose state is a single
32-bit unsigned integer. The state is derived by hashing the render seed, the
pixel index and the sample index together, so:

- no generator state is shared between parallel workers,
- the random sequence consumed by a sample does not depend on which thread
  happens to execute it,
- re-rendering with the same seed reproduces the image exactly.

The generator is a PCG-style LCG step followed by the RXS-M-XS output
permutation. Random functions take the current state and return
``(value, next_state)``; callers thread the state through explicitly.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.sampler import random_f32, seed_sampler
    >>> @ti.kernel
    ... def draw() -> ti.f32:
    ...     rng = seed_sampler(42, 0, 0)
    ...     value, rng = random_f32(rng)
    ...     return value
"""

import taichi as ti

# LCG multiplier and increment (increment must be odd)
_LCG_MULTIPLIER = 747796405
_LCG_INCREMENT = 1013904223

# Output permutation multiplier
_OUTPUT_MULTIPLIER = 277803737

# 2^-24: maps the top 24 bits of a u32 onto [0, 1)
_INV_2_24 = 1.0 / 16777216.0


@ti.func
def _u32(value) -> ti.u32:
    """Cast an integer expression to u32."""
    return ti.cast(value, ti.u32)


@ti.func
def _permute(state: ti.u32) -> ti.u32:
    """Apply the RXS-M-XS output permutation to an LCG state."""
    shift = (state >> _u32(28)) + _u32(4)
    word = ((state >> shift) ^ state) * _u32(_OUTPUT_MULTIPLIER)
    return (word >> _u32(22)) ^ word


@ti.func
def pcg_hash(value: ti.u32) -> ti.u32:
    """Hash a 32-bit value with one LCG step and the output permutation.

    Args:
        value: The value to hash.

    Returns:
        A well-mixed 32-bit hash of the value.
    """
    state = _u32(value) * _u32(_LCG_MULTIPLIER) + _u32(_LCG_INCREMENT)
    return _permute(state)


@ti.func
def seed_sampler(seed: ti.i32, pixel_index: ti.i32, sample_index: ti.i32) -> ti.u32:
    """Derive an independent generator state for one sample of one pixel.

    Args:
        seed: The render seed.
        pixel_index: Linear pixel index (row * width + column).
        sample_index: Index of the sample within the pixel.

    Returns:
        The initial generator state for this sample.
    """
    h = pcg_hash(_u32(sample_index))
    h = pcg_hash(_u32(pixel_index) ^ h)
    return pcg_hash(_u32(seed) ^ h)


@ti.func
def next_u32(rng: ti.u32):
    """Advance the generator and return a random 32-bit integer.

    Args:
        rng: The current generator state.

    Returns:
        A tuple of (random_u32, next_state).
    """
    state = _u32(rng) * _u32(_LCG_MULTIPLIER) + _u32(_LCG_INCREMENT)
    return _permute(state), state


@ti.func
def random_f32(rng: ti.u32):
    """Draw a uniform random float in [0, 1).

    Args:
        rng: The current generator state.

    Returns:
        A tuple of (value, next_state).
    """
    bits, state = next_u32(rng)
    value = ti.cast(bits >> _u32(8), ti.f32) * _INV_2_24
    return value, state


@ti.func
def random_range(rng: ti.u32, low: ti.f32, high: ti.f32):
    """Draw a uniform random float in [low, high).

    Args:
        rng: The current generator state.
        low: Lower bound (inclusive).
        high: Upper bound (exclusive).

    Returns:
        A tuple of (value, next_state).
    """
    value, state = random_f32(rng)
    return low + (high - low) * value, state


def normalize_seed(seed: int) -> int:
    """Fold an arbitrary Python integer seed into the kernel's i32 range.

    Args:
        seed: Any integer seed.

    Returns:
        A non-negative integer that fits in a signed 32-bit kernel argument.
    """
    return int(seed) & 0x7FFFFFFF
