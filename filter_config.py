"""
Tuning constants and parameter defaults for the live vision filters.

Everything that shapes the look of a filter but is not exposed as a
user-facing parameter lives here as a module constant. The user-facing
parameters (the ones a settings panel would bind sliders to) are in
DEFAULT_PARAMS and travel through FilterParams.
"""

import copy
import logging
import os

import yaml

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
#  GENERAL
# ═══════════════════════════════════════════════════════════════
CANVAS_WIDTH = 640        # Default output surface size
CANVAS_HEIGHT = 360
CAMERA_SOURCE = 0         # 0 = default webcam, 1 = external, or "http://IP:PORT/video"
FPS_LIMIT = 60            # Display refresh target (~16ms per tick)
MODES = ("matrix", "rotoscope", "cel_shade")

# Luma weights (R, G, B)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


# ═══════════════════════════════════════════════════════════════
#  MATRIX RAIN
# ═══════════════════════════════════════════════════════════════
# Half-width katakana are what the effect is known for, but the Hershey
# fonts cv2 rasterizes with only cover ASCII, so glyphs are drawn from a
# digit/symbol set that reads the same at small sizes.
MATRIX_GLYPHS = list("0123456789ZXKMNTYH:.=*+-<>|\"")

MATRIX_SAMPLE_RADIUS = 2          # Box average radius in video pixels
MATRIX_BRIGHTNESS_BLEND = 0.3     # Weight of the new target per tick
MATRIX_MIN_GAMMA = 0.1            # Floor for 2 - sensitivity/5
MATRIX_DRAW_THRESHOLD = 0.05      # Cells darker than this are skipped
MATRIX_HEAD_THRESHOLD = 0.3       # Stream heads brighter than this glow
MATRIX_FADE = 0.1                 # Black fill alpha applied every tick

STREAM_SPEED_RANGE = (0.3, 0.7)   # Cells per tick before modulation
STREAM_LENGTH_RANGE = (5, 20)     # Trail length, upper bound exclusive

TIMER_INITIAL_MAX = 100.0
TIMER_RESET_RANGE = (20.0, 100.0)

EXPLOSION_STRIDE = 8              # Sample every 8th cell in each axis
EXPLOSION_THRESHOLD = 0.85
EXPLOSION_RATE_DIVISOR = 3000.0
EXPLOSION_SPREAD_RANGE = (0.15, 0.25)   # Fraction of canvas size
EXPLOSION_BASE_PARTICLES = 15
EXPLOSION_EXTRA_PARTICLES = 30
PARTICLE_CAP = 500
PARTICLE_STATIONARY_CHANCE = 0.4
PARTICLE_MAX_SPEED = 0.15
PARTICLE_DECAY_RANGE = (0.006, 0.016)
PARTICLE_WHITE_CHANCE = 0.5
PARTICLE_GRAVITY_CHANCE = 0.3
PARTICLE_GRAVITY = 0.02
PARTICLE_GLYPH_SWAP_CHANCE = 0.05

# Colors (R, G, B)
MATRIX_HEAD_GLOW = (200, 255, 200)
PARTICLE_WHITE = (200, 255, 200)
PARTICLE_GREEN = (0, 255, 0)


# ═══════════════════════════════════════════════════════════════
#  ROTOSCOPE
# ═══════════════════════════════════════════════════════════════
NOISE_SIZE = 512                  # Lattice side per channel
WARP_OCTAVES = 3
COLOR_OCTAVES = 2
WARP_FREQUENCY = 0.015
WARP_SCALE = 3.0
WARP_Y_PHASE = 1.2
BREATH_AMPLITUDE = 0.004
BREATH_MIN_SCALE = 0.05
COLOR_FREQUENCY = 0.008
COLOR_Y_PHASE = 0.7
COLOR_CHANNEL_WEIGHTS = (1.2, 0.6, -0.8)
DITHER_FREQUENCY = 0.5
DITHER_PHASE_STEP = 0.1
DITHER_AMOUNT = 0.3
TIME_STEP = 16.0                  # Virtual milliseconds per tick

MOTION_BLOCK = 16
MOTION_DECAY = 0.7                # Block value weight kept per tick
GLOBAL_MOTION_DECAY = 0.8
MOTION_LOCAL_GAIN = 15.0
MOTION_GLOBAL_GAIN = 8.0

PAINTERLY_MIN = 0.2
PAINTERLY_STRIDE = 2
PAINTERLY_BASE_THRESHOLD = 40.0
PAINTERLY_EXTRA_THRESHOLD = 60.0

EDGE_STRIDE = 3
EDGE_THRESHOLD = 25.0
EDGE_MIN_OPACITY = 0.05
EDGE_LOCAL_GAIN = 12.0
EDGE_GLOBAL_GAIN = 6.0
EDGE_WOBBLE_FREQUENCY = 0.08
EDGE_WOBBLE_SCALE = 4.0
EDGE_ALPHA_RANGE = 80.0

SKETCH_INTERVAL = 3
SKETCH_NOISE_GATE = 0.6
SKETCH_COLOR = (30, 25, 35)


# ═══════════════════════════════════════════════════════════════
#  CEL SHADE
# ═══════════════════════════════════════════════════════════════
SHADOW_LUMA = 80.0
HIGHLIGHT_LUMA = 180.0
THICKEN_THRESHOLD = 30.0
THICKEN_RANGE = 100.0
THICKEN_MAX_DARKNESS = 0.85
OUTLINE_STRIDE = 2
OUTLINE_THRESHOLD = 40.0
OUTLINE_STRENGTH_RANGE = 150.0
OUTLINE_NEIGHBORS = ((2, 0), (0, 2), (2, 2), (-2, 2))
OUTLINE_WIDTH_SCALE = 0.8


# ═══════════════════════════════════════════════════════════════
#  USER PARAMETERS
# ═══════════════════════════════════════════════════════════════
DEFAULT_PARAMS = {
    "matrix": {
        "char_size": 12,
        "fall_speed": 5,
        "brightness_sensitivity": 6,
        "explosion_rate": 3,
        "contrast": 7,
    },
    "rotoscope": {
        "wobble_intensity": 2.5,
        "wobble_speed": 0.002,
        "color_levels": 8,
        "edge_thickness": 1.5,
        "edge_opacity": 0.7,
        "color_shift_amount": 15,
        "color_shift_speed": 0.0008,
        "breathing_intensity": 2.5,
        "breathing_speed": 0.0015,
        "painterliness": 0.6,
        "saturation_boost": 1.3,
    },
    "cel_shade": {
        "edge_thickness": 3,
        "color_levels": 6,
        "shadow_intensity": 5,
        "highlight_boost": 5,
        "saturation_boost": 6,
    },
}


class ConfigError(Exception):
    """Raised when a preset file exists but cannot be understood."""


class FilterParams:
    """Named numeric parameters for one filter.

    Values are stored as given; the filters clamp whatever they derive
    from them, so there is no range checking here.
    """

    def __init__(self, mode, overrides=None):
        if mode not in DEFAULT_PARAMS:
            raise ValueError(f"Unknown filter mode: {mode}")
        self.mode = mode
        self._values = dict(DEFAULT_PARAMS[mode])
        for name, value in (overrides or {}).items():
            self.update(name, value)

    def update(self, name, value):
        if name not in self._values:
            raise KeyError(f"{self.mode} has no parameter '{name}'")
        self._values[name] = value

    def as_dict(self):
        return dict(self._values)

    def __getattr__(self, name):
        values = self.__dict__.get("_values")
        if values is not None and name in values:
            return values[name]
        raise AttributeError(name)

    def __repr__(self):
        return f"FilterParams({self.mode!r}, {self._values!r})"


def load_presets(path):
    """Load per-filter parameter overrides from a YAML file.

    Args:
        path (str): File whose top-level keys are filter modes, each
                    mapping parameter names to numbers.

    Returns:
        dict: mode -> {param: value}, starting from DEFAULT_PARAMS.
    """
    presets = copy.deepcopy(DEFAULT_PARAMS)

    if not path or not os.path.exists(path):
        log.warning(f"Preset file not found: {path}")
        return presets

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse presets in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Presets in {path} must be a mapping of filter modes")

    for mode, values in data.items():
        if mode not in presets:
            log.warning(f"Ignoring presets for unknown filter '{mode}'")
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Presets for '{mode}' must be a mapping")
        for name, value in values.items():
            if name not in presets[mode]:
                log.warning(f"Ignoring unknown {mode} parameter '{name}'")
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{mode}.{name} must be a number, got {value!r}")
            presets[mode][name] = value

    log.info(f"Loaded filter presets from {path}")
    return presets
