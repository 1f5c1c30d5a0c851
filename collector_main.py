"""Entry point for the logrelay collector."""

import logging
import signal
import sys
import threading

from logrelay.collector import Collector
from logrelay.config import load_collector_config
from logrelay.errors import ConfigError


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    try:
        config = load_collector_config(argv)
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)
    logging.getLogger().setLevel(config.log_level)

    shutdown_event = threading.Event()
    collector = Collector(config, shutdown_event)

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        collector.start()
    except OSError as e:
        logger.critical("Cannot listen on %s:%d: %s", config.host, config.port, e)
        sys.exit(1)
    finally:
        collector.stop()


if __name__ == "__main__":
    main()
