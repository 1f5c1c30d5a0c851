"""Entry point for the logrelay agent."""

import logging
import signal
import sys
import threading

from logrelay.agent import Agent, AgentState
from logrelay.config import load_agent_config
from logrelay.errors import ConfigError

# Wake-up interval of the keep-alive loop in the main thread.
HEARTBEAT_INTERVAL = 60.0


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    try:
        config = load_agent_config(argv)
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)
    logging.getLogger().setLevel(config.log_level)

    shutdown_event = threading.Event()
    agent = Agent(config, shutdown_event)

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    def capture_loop():
        try:
            agent.run()
        except Exception:
            logger.exception("Capture loop crashed")
        finally:
            shutdown_event.set()

    capture = threading.Thread(target=capture_loop, name="capture", daemon=True)
    capture.start()

    # The capture loop does all the I/O; this thread only keeps the process up.
    while not shutdown_event.wait(HEARTBEAT_INTERVAL):
        logger.debug("Agent %s: attempts=%d, lines_sent=%d",
                     agent.state.value, agent.attempts, agent.lines_sent)

    agent.stop()
    capture.join(timeout=5)
    if agent.state is not AgentState.STOPPED:
        sys.exit(1)


if __name__ == "__main__":
    main()
