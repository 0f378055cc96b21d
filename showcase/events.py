"""In-process change notification.

Delivery is best-effort and local to one process; it does not fan out across
instances. Version numbers in the prompt store stay the source of truth.
"""
import time
from collections import defaultdict
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from showcase.logging import logger

CONFIG_CHANGED = "config-changed"
PROMPTS_CHANGED = "prompts-changed"


class ConfigChangedPayload(BaseModel):
    source: Literal["admin-settings", "prompt-manager", "system"]
    at: float = Field(default_factory=time.time)
    note: Optional[str] = None


Listener = Callable[[ConfigChangedPayload], None]


class EventBus:
    """Fire-and-forget publish/subscribe keyed by topic name."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def on(self, topic: str, listener: Listener) -> Callable[[], None]:
        """Subscribe ``listener`` to ``topic``. Returns an unsubscribe callable."""
        self._listeners[topic].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[topic]:
                self._listeners[topic].remove(listener)

        return unsubscribe

    def emit(self, topic: str, payload: ConfigChangedPayload) -> None:
        for listener in list(self._listeners[topic]):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"[Events] Listener for '{topic}' failed: {e}", exc_info=True)

    def on_config_changed(self, listener: Listener) -> Callable[[], None]:
        return self.on(CONFIG_CHANGED, listener)

    def emit_config_changed(self, payload: ConfigChangedPayload) -> None:
        self.emit(CONFIG_CHANGED, payload)

    def on_prompts_changed(self, listener: Listener) -> Callable[[], None]:
        return self.on(PROMPTS_CHANGED, listener)

    def emit_prompts_changed(self, payload: ConfigChangedPayload) -> None:
        self.emit(PROMPTS_CHANGED, payload)

    def listener_count(self, topic: str) -> int:
        return len(self._listeners[topic])
