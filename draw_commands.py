"""
Explicit draw commands and the one place they get rasterized.

Filters never touch a drawing context directly: they return lists of
Glyph / Stroke values that carry every bit of state needed to draw them
(color, alpha, width, glow). render_commands rasterizes each one into its
own 8-bit coverage mask and lays it over what is already drawn, in list
order, so a faint command tints earlier ones instead of replacing them.
"""

from collections import namedtuple

import cv2
import numpy as np

FONT = cv2.FONT_HERSHEY_PLAIN
GLOW_ALPHA = 0.4

# (x, y) is the top-left corner of the glyph cell
Glyph = namedtuple("Glyph", "x y char size color alpha glow_color glow")
Stroke = namedtuple("Stroke", "x0 y0 x1 y1 color alpha width")

_font_scales = {}


def _font_scale(size):
    size = max(1, int(size))
    if size not in _font_scales:
        _font_scales[size] = cv2.getFontScaleFromHeight(FONT, size)
    return _font_scales[size]


def _clamp_alpha(alpha):
    return float(min(1.0, max(0.0, alpha)))


def _color_tuple(color):
    # Surfaces are RGB; cv2 just writes the tuple into the channels in order
    return tuple(int(min(255, max(0, c))) for c in color)


def _box(cx0, cy0, cx1, cy1, w, h):
    """Integer canvas rectangle around a shape, or None when it is off screen."""
    x0 = max(0, int(np.floor(cx0)))
    y0 = max(0, int(np.floor(cy0)))
    x1 = min(w, int(np.ceil(cx1)) + 1)
    y1 = min(h, int(np.ceil(cy1)) + 1)
    if x0 >= x1 or y0 >= y1:
        return None
    return x0, y0, x1, y1


def _blend(canvas, box, mask, color, alpha):
    """Source-over one 8-bit coverage mask of `color` onto the float canvas."""
    x0, y0, x1, y1 = box
    a = mask.astype(np.float32) * (alpha / 255.0)
    region = canvas[y0:y1, x0:x1]
    region += (np.asarray(color, dtype=np.float32) - region) * a[..., None]


def _draw_stroke(canvas, cmd):
    a = _clamp_alpha(cmd.alpha)
    if a <= 0.0:
        return
    h, w = canvas.shape[:2]
    thickness = max(1, int(round(cmd.width)))
    p0 = (int(round(cmd.x0)), int(round(cmd.y0)))
    p1 = (int(round(cmd.x1)), int(round(cmd.y1)))
    box = _box(min(p0[0], p1[0]) - thickness, min(p0[1], p1[1]) - thickness,
               max(p0[0], p1[0]) + thickness, max(p0[1], p1[1]) + thickness, w, h)
    if box is None:
        return

    x0, y0, x1, y1 = box
    mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
    cv2.line(mask, (p0[0] - x0, p0[1] - y0), (p1[0] - x0, p1[1] - y0), 255, thickness)
    _blend(canvas, box, mask, _color_tuple(cmd.color), a)


def _draw_text(canvas, char, org, scale, thickness, color, alpha):
    h, w = canvas.shape[:2]
    (tw, th), baseline = cv2.getTextSize(char, FONT, scale, thickness)
    pad = thickness + 1
    box = _box(org[0] - pad, org[1] - th - pad, org[0] + tw + pad, org[1] + baseline + pad, w, h)
    if box is None:
        return

    x0, y0, x1, y1 = box
    mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
    cv2.putText(mask, char, (org[0] - x0, org[1] - y0), FONT, scale, 255, thickness)
    _blend(canvas, box, mask, color, alpha)


def _draw_glyph(canvas, cmd):
    a = _clamp_alpha(cmd.alpha)
    if a <= 0.0:
        return
    scale = _font_scale(cmd.size)
    org = (int(round(cmd.x)), int(round(cmd.y + cmd.size)))

    # Glow sits under the glyph as a thicker, fainter copy
    if cmd.glow and cmd.glow_color is not None:
        _draw_text(canvas, cmd.char, org, scale, 1 + int(cmd.glow) // 3,
                   _color_tuple(cmd.glow_color), a * GLOW_ALPHA)
    _draw_text(canvas, cmd.char, org, scale, 1, _color_tuple(cmd.color), a)


def render_commands(surface, commands):
    """Draw `commands` in order onto the RGB uint8 `surface` (in place)."""
    if not commands:
        return surface

    canvas = surface.astype(np.float32)
    for cmd in commands:
        if isinstance(cmd, Stroke):
            _draw_stroke(canvas, cmd)
        elif isinstance(cmd, Glyph):
            _draw_glyph(canvas, cmd)
        else:
            raise TypeError(f"Not a draw command: {cmd!r}")

    surface[...] = np.clip(np.rint(canvas), 0, 255).astype(np.uint8)
    return surface


def fade_to_black(surface, amount):
    """Lay a translucent black fill over `surface` (in place).

    Truncates instead of rounding so faint trails always reach zero.
    """
    keep = 1.0 - _clamp_alpha(amount)
    surface[...] = (surface.astype(np.float32) * keep).astype(np.uint8)
    return surface
