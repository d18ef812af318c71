"""
Shared per-pixel helpers used by every filter.

All functions work on whole NumPy arrays at once; a scalar goes in and
out just as well, which is what the tests lean on.
"""

import cv2
import numpy as np

from filter_config import LUMA_WEIGHTS, NOISE_SIZE


# ═══════════════════════════════════════════════════════════════
#  COLOR HELPERS
# ═══════════════════════════════════════════════════════════════

def luma(pixels):
    """Perceptual brightness (0-255) of an (..., 3+) RGB(A) array."""
    px = np.asarray(pixels, dtype=np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    return px[..., 0] * wr + px[..., 1] * wg + px[..., 2] * wb


def boost_saturation(rgb, gray, amount):
    """Push each channel away from (or toward) its gray value."""
    rgb = np.asarray(rgb, dtype=np.float64)
    gray = np.asarray(gray, dtype=np.float64)[..., None]
    return gray + (rgb - gray) * amount


def quantize(values, levels, dither=0.0):
    """Snap channel values to `levels` evenly spaced steps over 0-255.

    Rounds half up like a canvas would; levels below 2 collapse to 2.
    """
    levels = max(2, int(levels))
    step = 255.0 / (levels - 1)
    snapped = np.floor((np.asarray(values, dtype=np.float64) + dither) / step + 0.5) * step
    return np.clip(snapped, 0.0, 255.0)


def to_uint8(values):
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


# ═══════════════════════════════════════════════════════════════
#  VALUE NOISE
# ═══════════════════════════════════════════════════════════════

class NoiseTable:
    """Square lattice of independent random values in [0, 1).

    Filled once from the given generator and frozen; sampling wraps
    around the lattice in both axes.
    """

    def __init__(self, rng, size=NOISE_SIZE):
        self.size = int(size)
        self.table = rng.random((self.size, self.size))
        self.table.flags.writeable = False

    def sample(self, x, y):
        """Bilinear smoothstep interpolation between lattice values."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        fx = np.floor(x)
        fy = np.floor(y)
        xf = x - fx
        yf = y - fy
        size = self.size
        xi = fx.astype(np.int64) % size
        yi = fy.astype(np.int64) % size
        xn = (xi + 1) % size
        yn = (yi + 1) % size

        t = self.table
        n00 = t[yi, xi]
        n10 = t[yi, xn]
        n01 = t[yn, xi]
        n11 = t[yn, xn]

        sx = xf * xf * (3.0 - 2.0 * xf)
        sy = yf * yf * (3.0 - 2.0 * yf)
        nx0 = n00 * (1.0 - sx) + n10 * sx
        nx1 = n01 * (1.0 - sx) + n11 * sx
        return nx0 * (1.0 - sy) + nx1 * sy

    def fbm(self, x, y, octaves=3):
        """Fractal Brownian motion: octaves at half amplitude, double frequency."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        value = 0.0
        amplitude = 0.5
        frequency = 1.0
        total = 0.0
        for _ in range(max(1, int(octaves))):
            value = value + amplitude * self.sample(x * frequency, y * frequency)
            total += amplitude
            amplitude *= 0.5
            frequency *= 2.0
        return value / total


# ═══════════════════════════════════════════════════════════════
#  CONVOLUTION / SAMPLING
# ═══════════════════════════════════════════════════════════════

def sobel_magnitude(gray):
    """3x3 Sobel gradient magnitude; the one-pixel border is left at zero."""
    gray = np.asarray(gray, dtype=np.float64)
    mag = np.zeros_like(gray)
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return mag
    gx = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    mag[1:-1, 1:-1] = np.sqrt(gx[1:-1, 1:-1] ** 2 + gy[1:-1, 1:-1] ** 2)
    return mag


def disc_kernel(radius):
    """Structuring element covering every offset within `radius`."""
    r = max(0, int(radius))
    d = np.arange(-r, r + 1)
    dx, dy = np.meshgrid(d, d)
    return (dx * dx + dy * dy <= r * r).astype(np.uint8)


def fit_frame(frame, width, height):
    """RGB copy of `frame` stretched to width x height, or None."""
    if frame is None:
        return None
    rgb = np.ascontiguousarray(frame[..., :3])
    if rgb.shape[1] == width and rgb.shape[0] == height:
        return rgb.copy()
    return cv2.resize(rgb, (width, height), interpolation=cv2.INTER_LINEAR)


def bilinear_sample(image, map_x, map_y):
    """Sample `image` at fractional coordinates, clamping at the edges.

    Works in float32 so samples between pixels are not rounded.
    """
    return cv2.remap(np.asarray(image, dtype=np.float32),
                     np.asarray(map_x, dtype=np.float32),
                     np.asarray(map_y, dtype=np.float32),
                     interpolation=cv2.INTER_LINEAR,
                     borderMode=cv2.BORDER_REPLICATE)
