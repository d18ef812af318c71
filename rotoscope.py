"""
Rotoscope: a dreamy, hand-drawn look that never sits still.

Every pixel is pulled from a spot nudged by two fractal noise fields,
recolored by a third, posterized and optionally smoothed; sketchy strokes
are then drawn along the edges of the source. The amount of wobble
follows a coarse motion map, so movement in front of the camera makes
the picture swim more.

Time is a virtual counter that advances a fixed step per tick, not wall
clock time.
"""

import logging
import math

import numpy as np

from draw_commands import Stroke, render_commands
from filter_config import (
    BREATH_AMPLITUDE, BREATH_MIN_SCALE, COLOR_CHANNEL_WEIGHTS, COLOR_FREQUENCY,
    COLOR_OCTAVES, COLOR_Y_PHASE, DITHER_AMOUNT, DITHER_FREQUENCY, DITHER_PHASE_STEP,
    EDGE_ALPHA_RANGE, EDGE_GLOBAL_GAIN, EDGE_LOCAL_GAIN, EDGE_MIN_OPACITY, EDGE_STRIDE,
    EDGE_THRESHOLD, EDGE_WOBBLE_FREQUENCY, EDGE_WOBBLE_SCALE, GLOBAL_MOTION_DECAY,
    MOTION_BLOCK, MOTION_DECAY, MOTION_GLOBAL_GAIN, MOTION_LOCAL_GAIN,
    PAINTERLY_BASE_THRESHOLD, PAINTERLY_EXTRA_THRESHOLD, PAINTERLY_MIN,
    PAINTERLY_STRIDE, SKETCH_COLOR, SKETCH_INTERVAL, SKETCH_NOISE_GATE, TIME_STEP,
    WARP_FREQUENCY, WARP_OCTAVES, WARP_SCALE, WARP_Y_PHASE, FilterParams,
)
from filter_utils import (
    NoiseTable, bilinear_sample, boost_saturation, fit_frame, luma, quantize, to_uint8,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
#  MOTION MAP
# ═══════════════════════════════════════════════════════════════

class MotionMap:
    """Smoothed frame-to-frame luma change sampled at block centers."""

    def __init__(self, block=MOTION_BLOCK):
        self.block = block
        self.values = None
        self.global_motion = 0.0
        self.prev_luma = None

    @property
    def shape(self):
        return None if self.values is None else self.values.shape

    def reset(self):
        self.values = None
        self.prev_luma = None
        self.global_motion = 0.0

    def update(self, gray):
        """Fold in a new luma image. The first frame only primes the history."""
        h, w = gray.shape
        grid_h, grid_w = h // self.block, w // self.block

        if self.prev_luma is not None and self.prev_luma.shape != gray.shape:
            log.debug(f"Motion history dropped after resize to {w}x{h}")
            self.reset()
        if self.values is None or self.values.shape != (grid_h, grid_w):
            self.values = np.zeros((grid_h, grid_w))

        if self.prev_luma is None:
            self.prev_luma = gray.copy()
            return

        if grid_h and grid_w:
            half = self.block // 2
            cy = np.arange(grid_h) * self.block + half
            cx = np.arange(grid_w) * self.block + half
            now = gray[np.ix_(cy, cx)]
            before = self.prev_luma[np.ix_(cy, cx)]
            motion = np.abs(now - before) / 255.0

            self.values = self.values * MOTION_DECAY + motion * (1.0 - MOTION_DECAY)
            np.clip(self.values, 0.0, 1.0, out=self.values)
            avg = float(self.values.mean())
            g = self.global_motion * GLOBAL_MOTION_DECAY + avg * (1.0 - GLOBAL_MOTION_DECAY)
            self.global_motion = min(1.0, max(0.0, g))

        self.prev_luma = gray.copy()

    def local(self, x, y):
        """Block value under pixel coordinates; the global level outside the grid."""
        x = np.asarray(x)
        y = np.asarray(y)
        if self.values is None or self.values.size == 0:
            return np.full(np.broadcast(x, y).shape, self.global_motion)

        grid_h, grid_w = self.values.shape
        gx = np.floor(x / self.block).astype(np.int64)
        gy = np.floor(y / self.block).astype(np.int64)
        inside = (gx >= 0) & (gx < grid_w) & (gy >= 0) & (gy < grid_h)
        picked = self.values[np.clip(gy, 0, grid_h - 1), np.clip(gx, 0, grid_w - 1)]
        return np.where(inside, picked, self.global_motion)

    def multiplier(self, x, y, local_gain=MOTION_LOCAL_GAIN, global_gain=MOTION_GLOBAL_GAIN):
        """1.0 with no motion, growing with local and global movement."""
        return 1.0 + self.local(x, y) * local_gain + self.global_motion * global_gain


# ═══════════════════════════════════════════════════════════════
#  FILTER
# ═══════════════════════════════════════════════════════════════

class RotoscopeFilter:
    """Noise-warped, posterized, sketch-outlined rendition of the camera."""

    mode = "rotoscope"

    def __init__(self, params=None, rng=None):
        self.params = params if params is not None else FilterParams("rotoscope")
        self.rng = rng if rng is not None else np.random.default_rng()

        # Fixed for the life of the filter
        self.noise_x = NoiseTable(self.rng)
        self.noise_y = NoiseTable(self.rng)
        self.noise_color = NoiseTable(self.rng)

        self.motion = MotionMap()
        self.time = 0.0
        self.ticks = 0
        self._grid = None

    # ── helpers ──

    def _pixel_grid(self, width, height):
        if self._grid is None or self._grid[0].shape != (height, width):
            log.debug(f"Rotoscope buffers reallocated for {width}x{height}")
            xs, ys = np.meshgrid(np.arange(width, dtype=np.float64),
                                 np.arange(height, dtype=np.float64))
            self._grid = (xs, ys)
        return self._grid

    def _phases(self):
        p = self.params
        return (self.time * p.wobble_speed,
                self.time * p.color_shift_speed,
                self.time * p.breathing_speed)

    def breath_scale(self):
        _, _, breath_t = self._phases()
        scale = 1.0 + math.sin(breath_t) * BREATH_AMPLITUDE * self.params.breathing_intensity
        return max(BREATH_MIN_SCALE, scale)

    # ── passes ──

    def stylize(self, src, xs, ys):
        """Warp, recolor and posterize every pixel. Returns float RGB."""
        p = self.params
        h, w = src.shape[:2]
        t, color_t, _ = self._phases()

        mult = self.motion.multiplier(xs, ys)
        amp = p.wobble_intensity * WARP_SCALE * mult
        fx = xs * WARP_FREQUENCY
        fy = ys * WARP_FREQUENCY
        wobble_x = (self.noise_x.fbm(fx + t, fy, WARP_OCTAVES) - 0.5) * amp
        wobble_y = (self.noise_y.fbm(fx, fy + t * WARP_Y_PHASE, WARP_OCTAVES) - 0.5) * amp

        scale = self.breath_scale()
        cx, cy = w / 2.0, h / 2.0
        src_x = np.clip((xs - cx) / scale + cx + wobble_x, 0, w - 1)
        src_y = np.clip((ys - cy) / scale + cy + wobble_y, 0, h - 1)

        rgb = bilinear_sample(src, src_x, src_y).astype(np.float64)
        rgb = boost_saturation(rgb, luma(rgb), p.saturation_boost)

        color_noise = self.noise_color.fbm(xs * COLOR_FREQUENCY + color_t,
                                           ys * COLOR_FREQUENCY + color_t * COLOR_Y_PHASE,
                                           COLOR_OCTAVES)
        shift = (color_noise - 0.5) * p.color_shift_amount * 2.0
        rgb += shift[..., None] * np.asarray(COLOR_CHANNEL_WEIGHTS)

        levels = max(2, int(p.color_levels))
        step = 255.0 / (levels - 1)
        return quantize(rgb, levels, self.dither(xs, ys, step)[..., None])

    def dither(self, xs, ys, step):
        """Per-pixel offset within +-0.15 of a level step, shifting every tick."""
        n = self.noise_color.sample(xs * DITHER_FREQUENCY + self.ticks * DITHER_PHASE_STEP,
                                    ys * DITHER_FREQUENCY)
        return (n - 0.5) * step * DITHER_AMOUNT

    def painterly_smooth(self, rgb):
        """Sparse edge-preserving average: only near-colored neighbors blend in."""
        p = self.params.painterliness
        if p <= PAINTERLY_MIN:
            return rgb

        radius = max(1, int(1 + p * 2))
        threshold = PAINTERLY_BASE_THRESHOLD + (1.0 - p) * PAINTERLY_EXTRA_THRESHOLD
        h, w = rgb.shape[:2]
        if h <= 2 * radius or w <= 2 * radius:
            return rgb

        temp = rgb.copy()
        stride = PAINTERLY_STRIDE
        rows = slice(radius, h - radius, stride)
        cols = slice(radius, w - radius, stride)
        center = temp[rows, cols]

        total = np.zeros_like(center)
        count = np.zeros(center.shape[:2])
        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                nb = temp[radius + dy:h - radius + dy:stride, radius + dx:w - radius + dx:stride]
                similar = np.abs(nb - center).sum(axis=2) < threshold
                total += nb * similar[..., None]
                count += similar

        has = count > 0
        out = rgb.copy()
        block = out[rows, cols]  # view
        block[has] = np.rint(total[has] / count[has][:, None])
        return out

    def edge_strokes(self, src, width, height):
        """Short wobbly strokes across strong luma gradients of the source."""
        p = self.params
        if p.edge_opacity < EDGE_MIN_OPACITY:
            return []

        step = EDGE_STRIDE
        if height <= 2 * step or width <= 2 * step:
            return []

        gray = luma(src)
        ys = np.arange(step, height - step, step)
        xs = np.arange(step, width - step, step)
        gx = gray[np.ix_(ys, xs + step)] - gray[np.ix_(ys, xs - step)]
        gy = gray[np.ix_(ys + step, xs)] - gray[np.ix_(ys - step, xs)]
        mag = np.sqrt(gx * gx + gy * gy)

        hit_r, hit_c = np.nonzero(mag > EDGE_THRESHOLD)
        if hit_r.size == 0:
            return []

        px = xs[hit_c].astype(np.float64)
        py = ys[hit_r].astype(np.float64)
        ex = gx[hit_r, hit_c]
        ey = gy[hit_r, hit_c]
        m = mag[hit_r, hit_c]

        t2 = self.time * p.wobble_speed * 2.0
        local = self.motion.local(px, py)
        mult = self.motion.multiplier(px, py, EDGE_LOCAL_GAIN, EDGE_GLOBAL_GAIN)
        amp = p.wobble_intensity * EDGE_WOBBLE_SCALE * mult
        draw_x = px + (self.noise_x.sample(px * EDGE_WOBBLE_FREQUENCY + t2 * 3.0,
                                           py * EDGE_WOBBLE_FREQUENCY) - 0.5) * amp
        draw_y = py + (self.noise_y.sample(px * EDGE_WOBBLE_FREQUENCY,
                                           py * EDGE_WOBBLE_FREQUENCY + t2 * 3.5) - 0.5) * amp

        tint = self.noise_color.sample(px * 0.02 + self.ticks * 0.05, py * 0.02)
        alpha = np.minimum(1.0, m / EDGE_ALPHA_RANGE) * p.edge_opacity
        width_px = p.edge_thickness * (1.0 + local * 2.0)

        # Perpendicular to the gradient
        angle = np.arctan2(ey, ex) + math.pi / 2.0
        half = (1.5 + self.noise_x.sample(px * 0.1, py * 0.1) * 2.0) * (1.0 + local * 3.0)
        dx = np.cos(angle) * half
        dy = np.sin(angle) * half

        strokes = []
        for i in range(px.size):
            color = (20 + tint[i] * 30, 15 + tint[i] * 25, 25 + tint[i] * 20)
            strokes.append(Stroke(draw_x[i] - dx[i], draw_y[i] - dy[i],
                                  draw_x[i] + dx[i], draw_y[i] + dy[i],
                                  color, alpha[i], width_px[i]))
        return strokes

    def sketch_marks(self, width, height):
        """A handful of faint random scribbles where the color noise runs high."""
        p = self.params
        t = self.time * p.wobble_speed
        count = max(0, int(5 + p.painterliness * 10))
        marks = []
        for _ in range(count):
            x = self.rng.random() * width
            y = self.rng.random() * height
            n = float(self.noise_color.sample(x * 0.01 + t, y * 0.01))
            if n <= SKETCH_NOISE_GATE:
                continue

            wx = (float(self.noise_x.sample(x * 0.1 + t, y * 0.1)) - 0.5) * 5
            wy = (float(self.noise_y.sample(x * 0.1, y * 0.1 + t)) - 0.5) * 5
            alpha = (n - SKETCH_NOISE_GATE) * 0.3 * p.edge_opacity
            width_px = 0.5 + self.rng.random()
            end_x = x + wx + (self.rng.random() - 0.5) * 8
            end_y = y + wy + (self.rng.random() - 0.5) * 8
            marks.append(Stroke(x + wx, y + wy, end_x, end_y, SKETCH_COLOR, alpha, width_px))
        return marks

    # ── tick ──

    def update_and_render(self, frame, width, height):
        src = fit_frame(frame, width, height)
        if src is None:
            # Nothing to draw from yet; hold the clock and motion history
            return np.zeros((height, width, 3), dtype=np.uint8)

        self.motion.update(luma(src))

        self.time += TIME_STEP
        self.ticks += 1

        xs, ys = self._pixel_grid(width, height)
        rgb = np.rint(self.stylize(src, xs, ys))
        rgb = self.painterly_smooth(rgb)
        surface = to_uint8(rgb)

        commands = self.edge_strokes(src, width, height)
        if self.params.edge_opacity >= EDGE_MIN_OPACITY and self.ticks % SKETCH_INTERVAL == 0:
            commands += self.sketch_marks(width, height)
        render_commands(surface, commands)
        return surface
