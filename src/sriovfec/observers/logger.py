from __future__ import annotations
import logging
from .events import BaseEvent, ConfigurationFailed, InventoryDriftDetected, StatusWriteFailed

# failures and drift are worth a look even with INFO filtered out
_LEVELS = {
    ConfigurationFailed: logging.ERROR,
    StatusWriteFailed: logging.ERROR,
    InventoryDriftDetected: logging.WARNING,
}


class LoggerObserver:
    def __init__(self, logger: logging.Logger, *, skip=("ts", "run_id", "node")):
        self.logger = logger
        self.skip = set(skip)

    def notify(self, event: BaseEvent) -> None:
        level = _LEVELS.get(type(event), logging.INFO)
        fields = " ".join(f"{k}={v}" for k, v in event.dict().items() if k not in self.skip)
        self.logger.log(level, "[EVENT] %s %s", type(event).__name__, fields)
