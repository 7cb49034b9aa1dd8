"""
Sentry live detection: capture frames from the camera, run the detection
model on as many of them as it can keep up with, and report overlays.

Usage:
    python src/main.py --config config/config.yaml --prefer back

Arguments:
    --config: Path to configuration file
    --prefer: Camera position to try first (back or front)
    --duration: Stop after this many seconds (default: run until Ctrl+C)
    --log-level: Override log_level from the config
"""

import os
import sys
import argparse
import logging
import time
import yaml
from typing import Dict, Any, Tuple, Optional

from models.config import CameraPosition, Config
from models.errors import DeviceUnavailable
from ops.logging import setup_logging
from pipeline.presenter import LogPresenter
from runtime.session import create_session_from_config

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Merge, in increasing priority:
    - `default.yaml` next to config_path (checked in)
    - `config.yaml` next to config_path (local overrides)
    - config_path itself, when it is neither of those
    """
    config_dir = os.path.dirname(config_path)
    layers = [
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "config.yaml"),
    ]
    if os.path.abspath(config_path) not in {os.path.abspath(p) for p in layers}:
        layers.append(config_path)

    merged: Dict[str, Any] = {}
    for path in layers:
        try:
            merged = _deep_merge(merged, _read_yaml(path))
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration from {path}: {e}")
            sys.exit(1)
    return merged


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    camera = config.get('camera') or {}
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"
    position = camera.get('preferred_position', 'back')
    if position not in ('back', 'front'):
        return False, "camera.preferred_position must be one of: back, front"
    for key in ('back_device', 'front_device'):
        if key in camera and (not isinstance(camera[key], int) or camera[key] < 0):
            return False, f"camera.{key} must be a non-negative integer"

    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in resolution):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"
    if camera.get('rotate', 0) not in (0, 90, 180, 270, None):
        return False, "camera.rotate must be one of: 0, 90, 180, 270"

    detection = config.get('detection') or {}
    backend = detection.get('backend', 'opencv_dnn')
    if backend not in ('opencv_dnn', 'ultralytics'):
        return False, "detection.backend must be one of: opencv_dnn, ultralytics"
    if not isinstance(detection.get('model', ''), str):
        return False, "detection.model must be a string"
    if detection.get('output_layout', 'v8') not in ('v8', 'v5'):
        return False, "detection.output_layout must be one of: v8, v5"
    for key in ('conf_threshold', 'iou_threshold'):
        if key in detection:
            v = detection[key]
            if not _is_number(v) or not (0 <= v <= 1):
                return False, f"detection.{key} must be between 0 and 1"
    if 'input_size' in detection and (not isinstance(detection['input_size'], int) or detection['input_size'] <= 0):
        return False, "detection.input_size must be a positive integer"

    pipeline = config.get('pipeline') or {}
    deadline = pipeline.get('result_deadline')
    if deadline is not None and (not _is_number(deadline) or deadline <= 0):
        return False, "pipeline.result_deadline must be a positive number"
    interval = pipeline.get('stats_log_interval', 10.0)
    if not _is_number(interval) or interval <= 0:
        return False, "pipeline.stats_log_interval must be a positive number"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main(argv=None) -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description='Sentry live detection')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--prefer', choices=['back', 'front'], default=None,
                        help='Camera position to try first')
    parser.add_argument('--duration', type=float, default=None,
                        help='Stop after this many seconds')
    parser.add_argument('--log-level', choices=VALID_LOG_LEVELS, default=None,
                        help='Override log_level from the config')
    args = parser.parse_args(argv)

    raw = load_config(args.config)
    if args.log_level:
        raw['log_level'] = args.log_level

    is_valid, error_msg = validate_config(raw)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    config = Config.from_dict(raw)
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting Sentry live detection")

    session = create_session_from_config(config, LogPresenter())
    preference = CameraPosition(args.prefer) if args.prefer else None

    try:
        session.start(preference)
    except DeviceUnavailable as e:
        logging.error(f"Cannot start capture: {e}")
        return 1

    deadline = time.monotonic() + args.duration if args.duration else None
    try:
        while session.is_running:
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(0.2)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        session.stop()
        logging.info("Sentry live detection stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
