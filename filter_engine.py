"""
FilterEngine: routes each display tick to the one active filter.

Filters that are not selected are simply not called, so their clocks,
grids and motion history stay frozen until they are picked again. The
engine records the tick at which each filter last ran so that pause is
visible from the outside.
"""

import logging

import numpy as np

from cel_shade import CelShadeFilter
from filter_config import CANVAS_HEIGHT, CANVAS_WIDTH, MODES, FilterParams
from matrix_rain import MatrixRainFilter
from rotoscope import RotoscopeFilter

log = logging.getLogger(__name__)


class FilterEngine:
    """Active filter, canvas size and the per-tick dispatch."""

    def __init__(self, width=CANVAS_WIDTH, height=CANVAS_HEIGHT, mode="matrix", seed=None, params=None):
        self._check_size(width, height)
        self._width = int(width)
        self._height = int(height)
        params = params or {}

        # One independent random stream per filter
        matrix_seq, roto_seq = np.random.SeedSequence(seed).spawn(2)
        self.filters = {
            "matrix": MatrixRainFilter(FilterParams("matrix", params.get("matrix")),
                                       np.random.default_rng(matrix_seq)),
            "rotoscope": RotoscopeFilter(FilterParams("rotoscope", params.get("rotoscope")),
                                         np.random.default_rng(roto_seq)),
            "cel_shade": CelShadeFilter(FilterParams("cel_shade", params.get("cel_shade"))),
        }

        self._tick_count = 0
        self._last_active = dict.fromkeys(MODES)
        self._mode = None
        self.set_mode(mode)

    @staticmethod
    def _check_size(width, height):
        if int(width) <= 0 or int(height) <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")

    # ── properties ──

    @property
    def mode(self):
        return self._mode

    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    @property
    def tick_count(self):
        return self._tick_count

    @property
    def active_filter(self):
        return self.filters[self._mode]

    def last_active_tick(self, mode):
        """Engine tick at which `mode` last rendered, or None if never."""
        if mode not in self.filters:
            raise ValueError(f"Unknown filter mode: {mode}")
        return self._last_active[mode]

    # ── control ──

    def set_mode(self, mode):
        if mode not in self.filters:
            raise ValueError(f"Unknown filter mode: {mode} (expected one of {', '.join(MODES)})")
        if mode == self._mode:
            return
        previous = self._mode
        self._mode = mode
        # Matrix draws over its own last frame; start it from black
        if mode == "matrix":
            self.filters["matrix"].clear()
        log.info(f"Filter mode: {previous} -> {mode}")

    def resize(self, width, height):
        self._check_size(width, height)
        if (int(width), int(height)) == (self._width, self._height):
            return
        self._width = int(width)
        self._height = int(height)
        log.info(f"Canvas resized to {self._width}x{self._height}")

    def set_param(self, mode, name, value):
        """Forward one named parameter to a filter; no range checks."""
        if mode not in self.filters:
            raise ValueError(f"Unknown filter mode: {mode}")
        self.filters[mode].params.update(name, value)
        log.debug(f"{mode}.{name} = {value}")

    def tick(self, frame):
        """Run the active filter once and return its RGB surface."""
        self._tick_count += 1
        self._last_active[self._mode] = self._tick_count
        return self.active_filter.update_and_render(frame, self._width, self._height)
