# map_generator/noise.py

"""
================================================================================
NOISE GENERATION UTILITIES
================================================================================
This module provides seeded 2D Perlin noise and fractal Brownian motion (fBm).

Data Contract:
---------------
- NoiseContext(seed) owns a permutation table derived deterministically from
  the seed. There is no module-level noise state: every phase that needs
  noise builds (or is handed) its own context.
- noise2d(x, y) -> values in [-1, 1], same shape as the inputs.
- fbm(...) -> values approximately in [-1, 1], normalized by the summed
  octave amplitudes.
- Side Effects: None.
================================================================================
"""
import hashlib
import json

import numpy as np
from numba import njit

PERMUTATION_SIZE = 256

# Pre-defined gradient vectors for performance.
_GRADIENT_VECTORS = np.array([[0, 1], [0, -1], [1, 0], [-1, 0]])


def seed_to_int(seed) -> int:
    """
    Converts any JSON-serializable seed into a non-negative integer.
    Non-negative integers are used as-is; anything else is hashed so that
    string seeds such as 'hello world' are stable across runs and platforms.
    """
    if isinstance(seed, int) and not isinstance(seed, bool) and seed >= 0:
        return seed
    encoded = json.dumps(seed, sort_keys=True).encode('utf-8')
    return int.from_bytes(hashlib.sha256(encoded).digest()[:8], 'big')


def create_permutation_table(seed) -> np.ndarray:
    """Shuffles 0..255 with the seed and doubles it to avoid index wrapping."""
    p = np.arange(PERMUTATION_SIZE, dtype=np.int64)
    rng = np.random.default_rng(seed_to_int(seed))
    rng.shuffle(p)
    return np.stack([p, p]).flatten()


@njit
def _lerp(a, b, x):
    "Linear interpolation."
    return a + x * (b - a)

@njit
def _fade(t):
    "6t^5 - 15t^4 + 10t^3"
    return t * t * t * (t * (t * 6 - 15) + 10)

@njit
def _gradient(h, x, y):
    """Calculates the dot product between a gradient vector and coordinates."""
    g = _GRADIENT_VECTORS[h % 4]
    return g[0] * x + g[1] * y

@njit
def _perlin(p, x, y):
    """Single-octave Perlin noise at one point."""
    xi = int(np.floor(x))
    yi = int(np.floor(y))

    xf = x - xi
    yf = y - yi

    u = _fade(xf)
    v = _fade(yf)

    px0 = xi % 256
    px1 = (px0 + 1) % 256
    py0 = yi % 256
    py1 = (py0 + 1) % 256

    g00 = _gradient(p[p[px0] + py0], xf, yf)
    g01 = _gradient(p[p[px0] + py1], xf, yf - 1)
    g10 = _gradient(p[p[px1] + py0], xf - 1, yf)
    g11 = _gradient(p[p[px1] + py1], xf - 1, yf - 1)

    x1 = _lerp(g00, g10, u)
    x2 = _lerp(g01, g11, u)
    return _lerp(x1, x2, v)

@njit
def _fbm_kernel(p, xs, ys, octaves, persistence, lacunarity, base_frequency):
    """
    Sums `octaves` layers of Perlin noise over flat coordinate arrays and
    divides by the cumulative amplitude.
    """
    n = xs.shape[0]
    out = np.zeros(n)
    for i in range(n):
        total = 0.0
        amplitude = 1.0
        frequency = base_frequency
        max_value = 0.0

        for _ in range(octaves):
            total += _perlin(p, xs[i] * frequency, ys[i] * frequency) * amplitude
            max_value += amplitude
            amplitude *= persistence
            frequency *= lacunarity

        if max_value > 0.0:
            out[i] = total / max_value
    return out


class NoiseContext:
    """
    A seeded coherent-noise sampler. Reentrant: sampling never mutates the
    context, so one instance can be shared freely within a phase.
    """
    def __init__(self, seed, permutation_table: np.ndarray = None):
        """
        Args:
            seed: Any JSON-serializable seed value.
            permutation_table (np.ndarray, optional): A pre-computed table. If
                None, one is generated from the seed.
        """
        self.seed = seed
        if permutation_table is not None:
            self.permutation_table = np.ascontiguousarray(permutation_table, dtype=np.int64)
        else:
            self.permutation_table = create_permutation_table(seed)

    def noise2d(self, x, y):
        """Single-octave noise in [-1, 1]. Accepts scalars or arrays."""
        return self.fbm(x, y, octaves=1, persistence=1.0, lacunarity=1.0, base_frequency=1.0)

    def fbm(self, x, y, octaves: int, persistence: float, lacunarity: float, base_frequency: float):
        """Fractal Brownian motion. Accepts scalars or equally-shaped arrays."""
        x_arr, y_arr = np.broadcast_arrays(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
        shape = x_arr.shape
        values = _fbm_kernel(
            self.permutation_table,
            np.ascontiguousarray(x_arr).ravel(),
            np.ascontiguousarray(y_arr).ravel(),
            int(octaves), float(persistence), float(lacunarity), float(base_frequency)
        )
        if shape == ():
            return float(values[0])
        return values.reshape(shape)
