"""
Main entry point for the labelcam service.
"""

import sys
import time
import signal
import sqlite3
import logging
import argparse
import threading

from . import __version__
from .config import DEFAULT_CONFIG_PATH, Config, load_config, save_example_config
from .capture import VideoCapture
from .context import AppContext
from .detector import Detector
from .errors import ConfigError, DeviceAccessError, ModelLoadError
from .image_source import create_image_source
from .live import LiveDetectionLoop
from .server import WebServer
from .store import LabelStore
from .workflow import LabelingWorkflow


MODES = ("live", "manual", "both")

# Global shutdown flag
shutdown_flag = False

logger = logging.getLogger(__name__)


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    global shutdown_flag
    logger.info(f"Received signal {signum}, shutting down...")
    shutdown_flag = True


def setup_logging(level: str = "INFO"):
    """
    Setup logging configuration.

    Args:
        level: Logging level
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='labelcam detection overlay and labeling service')
    parser.add_argument(
        '-c', '--config',
        default=DEFAULT_CONFIG_PATH,
        help='Path to configuration file'
    )
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '-m', '--mode',
        choices=MODES,
        default='both',
        help='live camera overlay, manual labeling, or both'
    )
    parser.add_argument(
        '--write-example-config',
        metavar='PATH',
        help='Write an example configuration file and exit'
    )
    return parser.parse_args(argv)


def load_detector(detector: Detector, workflow=None):
    """Warm up the detector, then start the labeling workflow."""
    try:
        detector.load()
    except ModelLoadError as e:
        logger.error(f"Detector unavailable: {e}")
        return
    if workflow is not None:
        workflow.start()


def main(argv=None) -> int:
    """Application lifecycle."""
    global shutdown_flag

    args = parse_args(argv)

    if args.write_example_config:
        save_example_config(args.write_example_config)
        print(f"Example configuration written to {args.write_example_config}")
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    log_level = "DEBUG" if args.debug else config.logging.level
    setup_logging(log_level)

    logger.info("=" * 70)
    logger.info(f"labelcam v{__version__} ({args.mode} mode)")
    logger.info("=" * 70)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    return run(config, args.mode)


def run(config: Config, mode: str) -> int:
    """Build the components for ``mode`` and serve until shutdown."""
    live_enabled = mode in ("live", "both")
    manual_enabled = mode in ("manual", "both")

    detector = Detector(config.detector)
    context = None
    workflow = None
    server = None
    capture = None

    try:
        frame_source = create_image_source(config.image_source) if manual_enabled else None
        context = AppContext(LabelStore(config.store.db_path), detector, frame_source)
        context.open()

        if manual_enabled:
            workflow = LabelingWorkflow(context)

        server = WebServer(
            config.stream, context, workflow,
            quick_labels=config.labeling.quick_labels,
        )
        server.start()
        logger.info(f"UI available at http://<your-ip>:{config.stream.port}/")

        logger.info("Loading detector...")
        threading.Thread(
            target=load_detector, args=(detector, workflow),
            name="detector-load", daemon=True
        ).start()

        if live_enabled:
            capture = VideoCapture(config.video)
            run_live(capture, context, server, config.live.interval_ms)

        # Keep serving the labeling page (or the camera error) until asked to stop
        while not shutdown_flag:
            time.sleep(0.2)

    except (ConfigError, sqlite3.Error, OSError) as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    finally:
        logger.info("Cleaning up...")

        if capture is not None:
            capture.release()

        if workflow is not None:
            workflow.shutdown()

        detector.cleanup()

        if context is not None:
            context.close()

        if server is not None:
            server.stop()

        logger.info("Shutdown complete")

    return 0


def run_live(capture: VideoCapture, context: AppContext, server: WebServer,
             interval_ms: int):
    """
    Open the camera and run the overlay loop. A camera failure ends live
    mode; it is reported on the page and not retried.
    """
    loop = LiveDetectionLoop(
        capture, context,
        publish=server.update_frame,
        interval_ms=interval_ms,
        on_stats=server.update_stats,
    )
    try:
        capture.open()
        logger.info("Starting live detection loop...")
        loop.run(lambda: shutdown_flag)
    except DeviceAccessError as e:
        logger.error(f"Camera unavailable, live mode stopped: {e}")
        server.report_camera_error(str(e))


if __name__ == '__main__':
    sys.exit(main())
