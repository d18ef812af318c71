"""
Matrix rain: a grid of falling glyphs lit by the camera image.

Each cell samples the brightness of the video under it and eases toward
it; glyph churn, stream speed and explosion bursts all follow that
brightness. The state lives in plain value objects (MatrixState, Stream,
Particle) that the update functions below mutate; MatrixRainFilter only
wires them to a persistent drawing surface.
"""

import logging
import math

import numpy as np

from draw_commands import Glyph, fade_to_black, render_commands
from filter_config import (
    EXPLOSION_BASE_PARTICLES, EXPLOSION_EXTRA_PARTICLES, EXPLOSION_RATE_DIVISOR,
    EXPLOSION_SPREAD_RANGE, EXPLOSION_STRIDE, EXPLOSION_THRESHOLD,
    MATRIX_BRIGHTNESS_BLEND, MATRIX_DRAW_THRESHOLD, MATRIX_FADE, MATRIX_GLYPHS,
    MATRIX_HEAD_GLOW, MATRIX_HEAD_THRESHOLD, MATRIX_MIN_GAMMA, MATRIX_SAMPLE_RADIUS,
    PARTICLE_CAP, PARTICLE_DECAY_RANGE, PARTICLE_GLYPH_SWAP_CHANCE, PARTICLE_GRAVITY,
    PARTICLE_GRAVITY_CHANCE, PARTICLE_GREEN, PARTICLE_MAX_SPEED,
    PARTICLE_STATIONARY_CHANCE, PARTICLE_WHITE, PARTICLE_WHITE_CHANCE,
    STREAM_LENGTH_RANGE, STREAM_SPEED_RANGE, TIMER_INITIAL_MAX, TIMER_RESET_RANGE,
    FilterParams,
)
from filter_utils import luma

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
#  STATE
# ═══════════════════════════════════════════════════════════════

class Stream:
    """One falling column head. `y` is fractional and may sit off-grid."""

    __slots__ = ("column", "y", "speed", "length")

    def __init__(self, column, y, speed, length):
        self.column = column
        self.y = y
        self.speed = speed
        self.length = length

    def __repr__(self):
        return f"Stream(column={self.column}, y={self.y:.2f}, speed={self.speed:.2f}, length={self.length})"


class Particle:
    __slots__ = ("x", "y", "vx", "vy", "life", "decay", "glyph", "white", "gravity")

    def __init__(self, x, y, vx, vy, life, decay, glyph, white, gravity):
        self.x = x
        self.y = y
        self.vx = vx
        self.vy = vy
        self.life = life
        self.decay = decay
        self.glyph = glyph
        self.white = white
        self.gravity = gravity


class MatrixState:
    """Cell grid (rows x columns), one stream per column and the particle pool."""

    def __init__(self, width, height, char_size, glyphs, brightness, target, timers, streams):
        self.width = width
        self.height = height
        self.char_size = char_size
        self.glyphs = glyphs
        self.brightness = brightness
        self.target = target
        self.timers = timers
        self.streams = streams
        self.particles = []

    @property
    def grid_w(self):
        return self.glyphs.shape[1]

    @property
    def grid_h(self):
        return self.glyphs.shape[0]


def random_glyph(rng):
    return int(rng.integers(len(MATRIX_GLYPHS)))


def random_speed(rng):
    lo, hi = STREAM_SPEED_RANGE
    return lo + rng.random() * (hi - lo)


def random_length(rng):
    return int(rng.integers(*STREAM_LENGTH_RANGE))


def new_state(width, height, char_size, rng):
    """Fresh grid sized ceil(canvas / char_size) with randomized streams."""
    char_size = max(1, int(char_size))
    grid_w = max(1, math.ceil(width / char_size))
    grid_h = max(1, math.ceil(height / char_size))

    glyphs = rng.integers(len(MATRIX_GLYPHS), size=(grid_h, grid_w))
    brightness = np.zeros((grid_h, grid_w))
    target = np.zeros((grid_h, grid_w))
    timers = rng.random((grid_h, grid_w)) * TIMER_INITIAL_MAX

    streams = []
    for x in range(grid_w):
        streams.append(Stream(x, rng.random() * grid_h, random_speed(rng), random_length(rng)))

    return MatrixState(width, height, char_size, glyphs, brightness, target, timers, streams)


# ═══════════════════════════════════════════════════════════════
#  UPDATE
# ═══════════════════════════════════════════════════════════════

def adjust_brightness(raw, contrast, sensitivity):
    """Contrast stretch around mid-gray, then a gamma from the sensitivity."""
    b = (np.asarray(raw, dtype=np.float64) - 0.5) * (contrast / 5.0) + 0.5
    b = np.clip(b, 0.0, 1.0)
    gamma = max(MATRIX_MIN_GAMMA, 2.0 - sensitivity / 5.0)
    return np.clip(b ** gamma, 0.0, 1.0)


def sample_brightness(frame, grid_w, grid_h, contrast, sensitivity):
    """Box-averaged luma (0-1) under every cell, shaped (grid_h, grid_w).

    A missing frame reads as black.
    """
    if frame is None:
        return np.zeros((grid_h, grid_w))

    vh, vw = frame.shape[:2]
    r = MATRIX_SAMPLE_RADIUS
    offsets = np.arange(-r, r + 1)

    vx = np.floor(np.arange(grid_w) / grid_w * vw).astype(np.int64)
    vy = np.floor(np.arange(grid_h) / grid_h * vh).astype(np.int64)
    xs = np.clip(vx[:, None] + offsets[None, :], 0, vw - 1)
    ys = np.clip(vy[:, None] + offsets[None, :], 0, vh - 1)

    # (grid_h, 5, grid_w, 5, C)
    patch = frame[ys][:, :, xs]
    raw = (luma(patch) / 255.0).mean(axis=(1, 3))
    return adjust_brightness(raw, contrast, sensitivity)


def update_cells(state, target, rng):
    state.target = target
    state.brightness += (target - state.brightness) * MATRIX_BRIGHTNESS_BLEND
    np.clip(state.brightness, 0.0, 1.0, out=state.brightness)

    # Brighter cells churn through glyphs faster
    state.timers -= 1.0 + state.brightness * 2.0
    expired = state.timers <= 0
    count = int(expired.sum())
    if count:
        lo, hi = TIMER_RESET_RANGE
        state.glyphs[expired] = rng.integers(len(MATRIX_GLYPHS), size=count)
        state.timers[expired] = lo + rng.random(count) * (hi - lo)


def update_streams(state, fall_speed, rng):
    column_light = state.brightness.mean(axis=0)
    for stream in state.streams:
        speed_mod = 0.5 + column_light[stream.column] * 1.5
        stream.y += stream.speed * (fall_speed / 5.0) * speed_mod

        if stream.y - stream.length > state.grid_h:
            # Restart a whole trail above the top, then pick the next trail
            stream.y = -float(stream.length)
            stream.speed = random_speed(rng)
            stream.length = random_length(rng)


def create_explosion(state, x, y, intensity, rng):
    """Scatter a burst of particles around canvas point (x, y)."""
    lo, hi = EXPLOSION_SPREAD_RANGE
    size_mult = lo + rng.random() * (hi - lo)
    spread_x = state.width * size_mult
    spread_y = state.height * size_mult
    count = EXPLOSION_BASE_PARTICLES + int(intensity * EXPLOSION_EXTRA_PARTICLES)

    dlo, dhi = PARTICLE_DECAY_RANGE
    for _ in range(count):
        if rng.random() < PARTICLE_STATIONARY_CHANCE:
            vx = vy = 0.0
        else:
            vx = (rng.random() - 0.5) * 2.0 * PARTICLE_MAX_SPEED
            vy = (rng.random() - 0.5) * 2.0 * PARTICLE_MAX_SPEED
        state.particles.append(Particle(
            x=x + (rng.random() - 0.5) * spread_x,
            y=y + (rng.random() - 0.5) * spread_y,
            vx=vx,
            vy=vy,
            life=1.0,
            decay=dlo + rng.random() * (dhi - dlo),
            glyph=random_glyph(rng),
            white=bool(rng.random() < PARTICLE_WHITE_CHANCE),
            gravity=bool(rng.random() < PARTICLE_GRAVITY_CHANCE),
        ))


def spawn_explosions(state, explosion_rate, rng):
    if explosion_rate <= 0:
        return

    cs = state.char_size
    stride = EXPLOSION_STRIDE
    sparse = state.brightness[::stride, ::stride]
    for row, col in np.argwhere(sparse > EXPLOSION_THRESHOLD):
        b = float(sparse[row, col])
        if rng.random() < (explosion_rate / EXPLOSION_RATE_DIVISOR) * b:
            gx = col * stride
            gy = row * stride
            create_explosion(state, gx * cs + cs / 2.0, gy * cs + cs / 2.0, b, rng)


def update_particles(state, rng):
    alive = []
    for p in state.particles:
        p.x += p.vx
        p.y += p.vy
        if p.gravity:
            p.vy += PARTICLE_GRAVITY
        p.life = min(1.0, p.life - p.decay)

        if rng.random() < PARTICLE_GLYPH_SWAP_CHANCE:
            p.glyph = random_glyph(rng)

        if p.life > 0:
            alive.append(p)

    # Oldest particles go first
    if len(alive) > PARTICLE_CAP:
        alive = alive[-PARTICLE_CAP:]
    state.particles = alive


def update_matrix(state, frame, params, rng):
    """Advance the rain by one tick."""
    target = sample_brightness(frame, state.grid_w, state.grid_h,
                               params.contrast, params.brightness_sensitivity)
    update_cells(state, target, rng)
    update_streams(state, params.fall_speed, rng)
    spawn_explosions(state, params.explosion_rate, rng)
    update_particles(state, rng)


# ═══════════════════════════════════════════════════════════════
#  RENDER
# ═══════════════════════════════════════════════════════════════

def head_mask(state):
    """True where a stream head sits (0 <= stream.y - row < 1)."""
    mask = np.zeros(state.glyphs.shape, dtype=bool)
    for stream in state.streams:
        if stream.y >= 0:
            row = int(math.floor(stream.y))
            if row < state.grid_h:
                mask[row, stream.column] = True
    return mask


def render_matrix(state):
    """Draw commands for every lit cell followed by every particle."""
    cs = state.char_size
    heads = head_mask(state)
    commands = []

    rows, cols = np.nonzero(state.brightness >= MATRIX_DRAW_THRESHOLD)
    for row, col in zip(rows, cols):
        b = float(state.brightness[row, col])
        char = MATRIX_GLYPHS[state.glyphs[row, col]]

        if heads[row, col] and b > MATRIX_HEAD_THRESHOLD:
            pale = 180 + b * 75
            color = (pale, 255, pale)
            alpha = 0.9 + b * 0.1
            glow_color, glow = MATRIX_HEAD_GLOW, 12
        else:
            g = int(80 + b * 175)
            color = (0, g, 0)
            alpha = 0.3 + b * 0.7
            glow_color, glow = (0, g, 0), (8 if b > 0.5 else 3)

        commands.append(Glyph(col * cs, row * cs, char, cs, color, alpha, glow_color, glow))

    for p in state.particles:
        if p.white:
            color, glow = PARTICLE_WHITE, 6
        else:
            color, glow = PARTICLE_GREEN, 4
        commands.append(Glyph(p.x, p.y, MATRIX_GLYPHS[p.glyph], cs, color,
                              max(0.0, p.life), color, glow))

    return commands


# ═══════════════════════════════════════════════════════════════
#  FILTER
# ═══════════════════════════════════════════════════════════════

class MatrixRainFilter:
    """Falling-glyph rain over a surface that fades instead of clearing."""

    mode = "matrix"

    def __init__(self, params=None, rng=None):
        self.params = params if params is not None else FilterParams("matrix")
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state = None
        self.surface = None
        self.ticks = 0

    def reset(self, width, height):
        """Rebuild the grid for the current canvas and cell size."""
        self.state = new_state(width, height, self.params.char_size, self.rng)
        if self.surface is None or self.surface.shape[:2] != (height, width):
            self.surface = np.zeros((height, width, 3), dtype=np.uint8)
        log.debug(f"Matrix grid rebuilt: {self.state.grid_w}x{self.state.grid_h} cells")

    def _needs_reset(self, width, height):
        s = self.state
        return (s is None or s.width != width or s.height != height
                or s.char_size != max(1, int(self.params.char_size)))

    def update_and_render(self, frame, width, height):
        if self._needs_reset(width, height):
            self.reset(width, height)

        update_matrix(self.state, frame, self.params, self.rng)

        fade_to_black(self.surface, MATRIX_FADE)
        render_commands(self.surface, render_matrix(self.state))
        self.ticks += 1
        return self.surface.copy()

    def clear(self):
        if self.surface is not None:
            self.surface[...] = 0
