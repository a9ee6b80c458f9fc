"""
Main application: on-device object detection pipeline.

Acquires frames from the configured camera provider, runs the detection model
every N-th scheduling tick and publishes the results for the preview window
and the read-only web API.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the annotated preview window
    --web: Serve /api/detections and /api/status (overrides web.enabled)
    --ticks: Stop after this many scheduling ticks
"""

import os
import sys
import argparse
import logging
import signal
import threading
import yaml
from typing import Any, Dict, List, Optional, Tuple

from models.config import (
    AppConfig,
    BOX_ORDERS,
    CHANNEL_ORDERS,
    COORD_SPACES,
    OUTPUT_FAMILIES,
    SOURCE_PROVIDERS,
    TENSOR_LAYOUTS,
)
from models.errors import AcquisitionError, ConfigError
from ops.logging import VALID_LOG_LEVELS, setup_logging
from pipeline.builder import create_pipeline_from_config
from pipeline.driver import TickLoop, TickLoopConfig
from web.app import create_app
from web.state import state as web_state
import uvicorn


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _config_layers(config_path: str) -> List[str]:
    """Files to merge, lowest precedence first; missing files are skipped by the caller."""
    config_dir = os.path.dirname(config_path)
    layers = [
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "config.yaml"),
    ]
    if os.path.abspath(config_path) not in {os.path.abspath(p) for p in layers}:
        layers.append(config_path)
    return layers


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration, merging in order:
    - `default.yaml` next to ``config_path`` (checked in)
    - `config.yaml` next to ``config_path`` (local overrides)
    - ``config_path`` itself when it is neither of those

    Exits with status 1 if a file cannot be read or parsed.
    """
    merged: Dict[str, Any] = {}
    for path in _config_layers(config_path):
        if not os.path.exists(path):
            continue
        try:
            with open(path, "r") as f:
                layer = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration {path}: {e}")
            sys.exit(1)
        merged = _deep_merge(merged, layer)
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['camera', 'model', 'pipeline', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate camera settings
    camera = config.get('camera') or {}
    provider = camera.get('provider', 'webcam')
    if provider not in SOURCE_PROVIDERS:
        return False, f"camera.provider must be one of: {', '.join(SOURCE_PROVIDERS)}"
    if 'device_id' in camera:
        device_id = camera['device_id']
        if isinstance(device_id, bool) or not isinstance(device_id, (int, str)):
            return False, "camera.device_id must be an integer (index) or string (URL or file path)"
        if isinstance(device_id, int) and device_id < 0:
            return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(_is_positive_int(x) for x in resolution):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and not _is_positive_int(camera['fps']):
        return False, "camera.fps must be a positive integer"

    # Validate model settings
    model = config.get('model') or {}
    choices = (
        ('family', OUTPUT_FAMILIES),
        ('coords', COORD_SPACES),
        ('layout', TENSOR_LAYOUTS),
        ('channel_order', CHANNEL_ORDERS),
        ('box_order', BOX_ORDERS),
    )
    for key, allowed in choices:
        if key in model and model[key] not in allowed:
            return False, f"model.{key} must be one of: {', '.join(allowed)}"
    if 'nms_iou_threshold' in model:
        iou = model['nms_iou_threshold']
        if not _is_number(iou) or not (0 <= iou <= 1):
            return False, "model.nms_iou_threshold must be between 0 and 1"
    if 'class_offset' in model and (isinstance(model['class_offset'], bool) or not isinstance(model['class_offset'], int)):
        return False, "model.class_offset must be an integer"

    # Validate pipeline settings
    pipeline = config.get('pipeline') or {}
    for key in ('model_input_width', 'model_input_height', 'inference_interval'):
        if key in pipeline and not _is_positive_int(pipeline[key]):
            return False, f"pipeline.{key} must be a positive integer"
    if 'confidence_threshold' in pipeline:
        threshold = pipeline['confidence_threshold']
        if not _is_number(threshold) or not (0 <= threshold <= 1):
            return False, "pipeline.confidence_threshold must be between 0 and 1"
    if 'tick_hz' in pipeline:
        if not _is_number(pipeline['tick_hz']) or pipeline['tick_hz'] <= 0:
            return False, "pipeline.tick_hz must be a positive number"

    # Optional web settings
    web = config.get('web') or {}
    if 'port' in web:
        port = web['port']
        if not _is_positive_int(port) or port > 65535:
            return False, "web.port must be an integer between 1 and 65535"

    # Validate log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main():
    """Main application function."""
    # Parse command-line arguments
    parser = argparse.ArgumentParser(description='On-device object detection pipeline')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Enable preview window')
    parser.add_argument('--web', action='store_true',
                        help='Serve the read-only detections API')
    parser.add_argument('--ticks', type=int, default=None,
                        help='Stop after this many scheduling ticks')
    args = parser.parse_args()

    # Load configuration
    config = load_config(args.config)

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])

    try:
        app_cfg = AppConfig.from_dict(config)
    except ConfigError as e:
        logging.error(f"Configuration validation failed: {e}")
        sys.exit(1)

    logging.info("Starting holodetect")

    scheduler = None
    try:
        scheduler = create_pipeline_from_config(app_cfg)
        scheduler.start()
    except (ConfigError, AcquisitionError) as e:
        logging.error(f"Startup failed: {e}")
        if scheduler is not None:
            scheduler.shutdown()
        sys.exit(1)

    web_state.set_pipeline(scheduler.store, scheduler)

    if args.web or app_cfg.web.enabled:
        def run_web_app():
            uvicorn.run(
                create_app(),
                host=app_cfg.web.host,
                port=app_cfg.web.port,
                log_level="info",
            )

        web_thread = threading.Thread(target=run_web_app, daemon=True)
        web_thread.start()
        logging.info(f"Web API started on {app_cfg.web.host}:{app_cfg.web.port}")

    # Graceful shutdown on SIGTERM (systemd stop)
    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    loop = TickLoop(
        scheduler,
        TickLoopConfig(tick_hz=app_cfg.pipeline.tick_hz, display=args.display),
    )
    loop.run(max_ticks=args.ticks, stop_event=stop_event)
    web_state.clear()


if __name__ == "__main__":
    main()
