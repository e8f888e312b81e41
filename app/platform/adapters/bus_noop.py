import json
import logging
from collections import deque
from app.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    """Logs events and keeps the most recent ones in memory for inspection."""

    def __init__(self, keep: int = 100):
        self.sent: deque[tuple[str, str, dict]] = deque(maxlen=keep)

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        self.sent.append((topic, key, value))
        log.info("[NOOP BUS] topic=%s key=%s event=%s headers=%s", topic, key, json.dumps(value, default=str), headers or {})
