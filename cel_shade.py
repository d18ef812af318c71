"""
Cel shade: flat posterized color with heavy ink outlines.

Nothing is carried between frames except scratch buffers; each tick is a
pure function of the current frame and parameters.
"""

import logging

import cv2
import numpy as np

from draw_commands import Stroke, render_commands
from filter_config import (
    HIGHLIGHT_LUMA, OUTLINE_NEIGHBORS, OUTLINE_STRENGTH_RANGE, OUTLINE_STRIDE,
    OUTLINE_THRESHOLD, OUTLINE_WIDTH_SCALE, SHADOW_LUMA, THICKEN_MAX_DARKNESS,
    THICKEN_RANGE, THICKEN_THRESHOLD, FilterParams,
)
from filter_utils import (
    boost_saturation, disc_kernel, fit_frame, luma, quantize, sobel_magnitude, to_uint8,
)

log = logging.getLogger(__name__)

INK = (0, 0, 0)


def shade_pixels(rgb, gray, params):
    """Saturation, shadow/highlight push and posterization of every pixel."""
    sat_mult = 1.0 + (params.saturation_boost - 5) * 0.15
    out = boost_saturation(rgb, gray, sat_mult)

    shadow_factor = 0.7 + (1.0 - params.shadow_intensity / 5.0) * 0.3
    highlight_factor = 1.0 + (params.highlight_boost / 5.0 - 1.0) * 0.2

    shadows = gray < SHADOW_LUMA
    highlights = gray > HIGHLIGHT_LUMA
    out[shadows] *= shadow_factor
    out[highlights] = np.minimum(255.0, out[highlights] * highlight_factor)

    return quantize(out, params.color_levels)


def thicken_edges(surface, edges, thickness):
    """Darken pixels near strong edges, up to 85% for the strongest.

    Only pixels at least `thickness` away from the border are touched so
    the disc never leaves the edge buffer.
    """
    t = max(0, int(thickness))
    h, w = edges.shape
    if h <= 2 * t or w <= 2 * t:
        return surface

    nearby = cv2.dilate(edges.astype(np.float32), disc_kernel(t))
    darkness = np.clip((nearby - THICKEN_THRESHOLD) / THICKEN_RANGE, 0.0, 1.0) * THICKEN_MAX_DARKNESS

    inner = (slice(t, h - t), slice(t, w - t))
    keep = 1.0 - darkness[inner]
    surface[inner] = surface[inner] * keep[..., None]
    return surface


def outline_strokes(edges, thickness):
    """Ink segments joining strong edge samples on a sparse grid."""
    h, w = edges.shape
    step = OUTLINE_STRIDE
    if h <= 2 * step or w <= 2 * step:
        return []

    ys = np.arange(step, h - step, step)
    xs = np.arange(step, w - step, step)
    samples = edges[np.ix_(ys, xs)]
    strong = samples > OUTLINE_THRESHOLD
    line_width = thickness * OUTLINE_WIDTH_SCALE

    strokes = []
    for r, c in np.argwhere(strong):
        x, y = int(xs[c]), int(ys[r])
        here = float(samples[r, c])
        for dx, dy in OUTLINE_NEIGHBORS:
            nx, ny = x + dx, y + dy
            if not (0 <= nx < w and 0 <= ny < h):
                continue
            there = float(edges[ny, nx])
            if there > OUTLINE_THRESHOLD:
                strength = min(1.0, min(here, there) / OUTLINE_STRENGTH_RANGE)
                strokes.append(Stroke(x, y, nx, ny, INK, 0.6 + strength * 0.4, line_width))
    return strokes


class CelShadeFilter:
    """Two-pass Sobel/posterize cartoon look with stroked outlines."""

    mode = "cel_shade"

    def __init__(self, params=None):
        self.params = params if params is not None else FilterParams("cel_shade")
        self.ticks = 0
        self.edges = None
        self.last_strokes = []

    def _edge_buffer(self, width, height):
        if self.edges is None or self.edges.shape != (height, width):
            log.debug(f"Cel shade edge buffer reallocated for {width}x{height}")
            self.edges = np.zeros((height, width))
        return self.edges

    def update_and_render(self, frame, width, height):
        src = fit_frame(frame, width, height)
        surface = np.zeros((height, width, 3), dtype=np.uint8)
        if src is None:
            self.last_strokes = []
            return surface

        edges = self._edge_buffer(width, height)
        rgb = src.astype(np.float64)
        gray = luma(rgb)

        # Pass 1: interior pixels only
        edges[...] = sobel_magnitude(gray)
        if height > 2 and width > 2:
            inner = (slice(1, -1), slice(1, -1))
            surface[inner] = to_uint8(shade_pixels(rgb[inner], gray[inner], self.params))

        # Pass 2
        shaded = surface.astype(np.float64)
        thicken_edges(shaded, edges, self.params.edge_thickness)
        surface = to_uint8(shaded)

        self.last_strokes = outline_strokes(edges, self.params.edge_thickness)
        render_commands(surface, self.last_strokes)
        self.ticks += 1
        return surface
