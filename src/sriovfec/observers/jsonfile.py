from __future__ import annotations
import json
from pathlib import Path
from typing import Iterable, Optional, Tuple, Type
from .events import BaseEvent


class JsonFileObserver:
    """
    Node-local audit trail, one JSON object per line.

    Reboots and applies change the host under running workloads; keeping a
    record on the node survives the pod (and the API server being down).
    Pass `only` to restrict the file to specific event types.
    """

    def __init__(self, path: str | Path, *, only: Optional[Iterable[Type[BaseEvent]]] = None):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.only: Optional[Tuple[Type[BaseEvent], ...]] = tuple(only) if only else None

    def notify(self, event: BaseEvent) -> None:
        if self.only is not None and not isinstance(event, self.only):
            return
        record = {"event": type(event).__name__, **event.dict()}
        with self.path.open("a") as f:
            f.write(json.dumps(record, sort_keys=True) + "\n")
