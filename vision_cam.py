"""
Live camera stylizer.

    python vision_cam.py --mode rotoscope --width 640 --height 360

Keys: 1 = Matrix, 2 = Rotoscope, 3 = Cel shade, q / Esc = quit.
"""

import argparse
import logging
import sys
import time

import cv2

from camera_source import CameraError, CameraSource
from filter_config import CAMERA_SOURCE, CANVAS_HEIGHT, CANVAS_WIDTH, FPS_LIMIT, MODES, load_presets
from filter_engine import FilterEngine

log = logging.getLogger(__name__)

WINDOW_NAME = "Vision Filter"
MODE_KEYS = {ord("1"): "matrix", ord("2"): "rotoscope", ord("3"): "cel_shade"}
QUIT_KEYS = (ord("q"), 27)


def parse_camera(value):
    # Device indices are ints; anything else is a URL or path
    try:
        return int(value)
    except ValueError:
        return value


def build_parser():
    parser = argparse.ArgumentParser(description="Stylize a live camera feed in real time.")
    parser.add_argument("--camera", type=parse_camera, default=CAMERA_SOURCE,
                        help="device index or stream URL (default: %(default)s)")
    parser.add_argument("--width", type=int, default=CANVAS_WIDTH)
    parser.add_argument("--height", type=int, default=CANVAS_HEIGHT)
    parser.add_argument("--mode", choices=MODES, default="matrix")
    parser.add_argument("--seed", type=int, default=None, help="seed for reproducible effects")
    parser.add_argument("--presets", default=None, help="YAML file of parameter overrides")
    parser.add_argument("--fps", type=int, default=FPS_LIMIT)
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def run(engine, source, fps_limit):
    """Tick the engine once per display refresh until the user quits."""
    frame_time = 1.0 / max(1, fps_limit)
    prev_time = time.time()
    frames = 0
    report_time = prev_time

    while True:
        # ── FPS Control ──
        elapsed = time.time() - prev_time
        if elapsed < frame_time:
            time.sleep(frame_time - elapsed)
        prev_time = time.time()

        frame = source.read()
        surface = engine.tick(frame)
        cv2.imshow(WINDOW_NAME, cv2.cvtColor(surface, cv2.COLOR_RGB2BGR))

        frames += 1
        if prev_time - report_time >= 5.0:
            log.debug(f"{engine.mode}: {frames / (prev_time - report_time):.1f} fps")
            frames = 0
            report_time = prev_time

        key = cv2.waitKey(1) & 0xFF
        if key in QUIT_KEYS:
            break
        if key in MODE_KEYS:
            engine.set_mode(MODE_KEYS[key])


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    params = load_presets(args.presets) if args.presets else None
    engine = FilterEngine(args.width, args.height, mode=args.mode, seed=args.seed, params=params)

    source = CameraSource(args.camera)
    try:
        source.open()
    except CameraError as e:
        log.error(str(e))
        return 1

    log.info("Press 1/2/3 to switch filters, q to quit.")
    try:
        run(engine, source, args.fps)
    except KeyboardInterrupt:
        pass
    finally:
        source.release()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    sys.exit(main())
