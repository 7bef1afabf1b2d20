# =====================================================================
# Main Script Initialization
# =====================================================================

import signal
import sys

from cdrhook.config import ConfigurationError, load_settings, logger
from cdrhook.connection import EventSupervisor
from cdrhook.pipeline import CallPipeline


def main() -> int:
    """
    Forward FreeSWITCH hangup events to the webhook until interrupted.
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    pipeline = CallPipeline(settings)
    supervisor = EventSupervisor(settings, pipeline.handle_event)

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        supervisor.stop()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(f"Forwarding call records to {settings.webhook_url}")
    supervisor.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
