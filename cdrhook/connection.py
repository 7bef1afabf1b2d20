# =====================================================================
# FreeSWITCH Event Socket Connection Handler
# =====================================================================

import threading
from enum import Enum
from typing import Any, Callable, Optional

from cdrhook.config import Settings, logger

HANGUP_EVENT = "CHANNEL_HANGUP_COMPLETE"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def open_esl_connection(host: str, port: int, password: str) -> Any:
    """Open an inbound ESL connection to FreeSWITCH."""
    import ESL

    return ESL.ESLconnection(host, str(port), password)


class EventSupervisor:
    """
    Keeps one ESL connection to FreeSWITCH alive and feeds hangup events
    to a handler.

    After any error or disconnect it waits reconnect_delay seconds and
    connects again, forever, until stop() is called. Each hangup event
    is handled on its own daemon thread.
    """

    def __init__(
        self,
        settings: Settings,
        handler: Callable[[Optional[str], Optional[str]], None],
        connection_factory: Callable[[str, int, str], Any] = open_esl_connection,
        wait: Optional[Callable[[float], bool]] = None,
        poll_interval_ms: int = 1000,
    ):
        self.settings = settings
        self.handler = handler
        self.connection_factory = connection_factory
        self.poll_interval_ms = poll_interval_ms
        self.conn = None
        self.state = ConnectionState.DISCONNECTED
        self._stopping = threading.Event()
        self._wait = wait or self._stopping.wait

    def connect(self) -> bool:
        """
        Connect and subscribe to hangup events.

        Returns True once subscribed, False if FreeSWITCH refused us.
        """
        host = self.settings.freeswitch_host
        port = self.settings.freeswitch_port
        logger.info(f"Connecting to FreeSWITCH at {host}:{port}...")

        self.conn = self.connection_factory(host, port, self.settings.freeswitch_password)
        if not self.conn.connected():
            logger.error("Failed to connect to FreeSWITCH")
            return False

        self.conn.events("plain", HANGUP_EVENT)
        self.state = ConnectionState.CONNECTED
        logger.info(f"Connected to FreeSWITCH, subscribed to {HANGUP_EVENT}")
        return True

    def dispatch(self, event: Any) -> Optional[threading.Thread]:
        """Hand a hangup event to the handler on a worker thread."""
        if event.getHeader("Event-Name") != HANGUP_EVENT:
            return None

        call_uuid = event.getHeader("Channel-Call-UUID")
        body = event.getBody()
        if not body:
            return None

        thread = threading.Thread(
            target=self.handler,
            args=(call_uuid, body),
            name=f"call-{call_uuid}",
        )
        thread.daemon = True
        thread.start()
        return thread

    def listen(self) -> None:
        """Read events until the connection drops or stop() is called."""
        while not self._stopping.is_set() and self.conn.connected():
            event = self.conn.recvEventTimed(self.poll_interval_ms)
            if event:
                self.dispatch(event)

    def disconnect(self) -> None:
        if self.conn is not None:
            try:
                if self.conn.connected():
                    self.conn.disconnect()
            except Exception as e:
                logger.debug(f"Error closing FreeSWITCH connection: {e}")
        self.conn = None
        self.state = ConnectionState.DISCONNECTED

    def run_forever(self) -> None:
        while not self._stopping.is_set():
            try:
                if self.connect():
                    self.listen()
                    if not self._stopping.is_set():
                        logger.warning("Connection to FreeSWITCH ended")
            except Exception as e:
                logger.error(f"FreeSWITCH connection error: {e}")
            finally:
                self.disconnect()

            if self._stopping.is_set():
                break
            logger.info(f"Reconnecting in {self.settings.reconnect_delay} seconds")
            if self._wait(self.settings.reconnect_delay):
                break

        logger.info("Event supervisor stopped")

    def stop(self) -> None:
        self._stopping.set()
