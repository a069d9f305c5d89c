# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/controller/controller.py
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from sriovfec.controller.queue import WorkQueue
from sriovfec.daemon.predicates import Predicate, WatchEvent
from sriovfec.daemon.reconciler import NodeConfigReconciler
from sriovfec.resources.models import ResourceKey

log = logging.getLogger("sriovfec")


class Controller:
    """
    Feeds filtered watch events to the reconciler through a work queue.

    One worker: a key is never reconciled concurrently with itself.
    Successful passes are requeued after the returned resync period,
    failed ones after an exponential backoff.
    """

    def __init__(
        self,
        reconciler: NodeConfigReconciler,
        event_filter: Predicate,
        *,
        queue: Optional[WorkQueue] = None,
        backoff_base: float = 1.0,
        backoff_max: float = 300.0,
    ):
        self.reconciler = reconciler
        self.event_filter = event_filter
        self.queue = queue or WorkQueue()
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._failures: Dict[ResourceKey, int] = {}

    def handle(self, event: WatchEvent) -> bool:
        if not self.event_filter.admits(event):
            return False
        log.debug("queued %s after %s event (generation=%d)", event.key, event.type.name, event.generation)
        self.queue.add(event.key)
        return True

    def enqueue(self, key: ResourceKey) -> None:
        self.queue.add(key)

    def backoff(self, key: ResourceKey) -> float:
        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures
        return min(self.backoff_base * (2 ** (failures - 1)), self.backoff_max)

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        key = self.queue.get(timeout)
        if key is None:
            return False

        try:
            result = self.reconciler.reconcile(key)
        except Exception as e:
            delay = self.backoff(key)
            log.error("reconcile of %s failed, retrying in %.1fs: %s", key, delay, e)
            self.queue.add_after(key, delay)
        else:
            self._failures.pop(key, None)
            if result.requeue_after:
                self.queue.add_after(key, result.requeue_after)
        finally:
            self.queue.done(key)
        return True

    def run(self, stop: threading.Event, poll_interval: float = 1.0) -> None:
        log.info("controller started")
        while not stop.is_set():
            self.process_next_item(timeout=poll_interval)
        self.queue.shut_down()
        log.info("controller stopped")
