# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/k8s/watch.py
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from kubernetes import client, watch
from kubernetes.client.exceptions import ApiException

from sriovfec.daemon.predicates import EventType, WatchEvent
from sriovfec.resources.models import API_GROUP, API_VERSION, PLURAL

log = logging.getLogger("sriovfec")


class NodeConfigWatcher:
    """
    Streams SriovFecNodeConfig events for one namespace.

    The watch API only delivers the new object, so the last generation seen
    per name is remembered to give updates an old/new generation pair.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        namespace: str,
        handler: Callable[[WatchEvent], Any],
        *,
        timeout_seconds: int = 300,
        retry_delay: float = 5.0,
    ):
        self.custom_api = custom_api
        self.namespace = namespace
        self.handler = handler
        self.timeout_seconds = timeout_seconds
        self.retry_delay = retry_delay
        self._generations: Dict[str, int] = {}

    def translate(self, raw: Dict[str, Any]) -> Optional[WatchEvent]:
        etype = raw.get("type")
        obj = raw.get("object") or {}
        meta = obj.get("metadata") or {}
        name = meta.get("name")
        if etype not in {e.value for e in EventType} or not name:
            return None

        generation = int(meta.get("generation") or 0)
        event_type = EventType(etype)

        if event_type is EventType.DELETE:
            self._generations.pop(name, None)
            return WatchEvent(event_type, meta.get("namespace", self.namespace), name, generation)

        previous = self._generations.get(name)
        self._generations[name] = generation

        # a re-list after a watch restart replays ADDED for objects we know
        if event_type is EventType.CREATE and previous is not None:
            event_type = EventType.UPDATE

        return WatchEvent(
            event_type,
            meta.get("namespace", self.namespace),
            name,
            generation,
            old_generation=previous if event_type is EventType.UPDATE else None,
        )

    def _stream_once(self, w: watch.Watch) -> None:
        for raw in w.stream(
            self.custom_api.list_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=self.namespace,
            plural=PLURAL,
            timeout_seconds=self.timeout_seconds,
        ):
            if raw.get("type") == "ERROR":
                log.warning("watch error event: %s", raw.get("object"))
                return
            event = self.translate(raw)
            if event is not None:
                self.handler(event)

    def run(self, stop: threading.Event) -> None:
        log.info("watching SriovFecNodeConfigs in namespace %s", self.namespace)
        while not stop.is_set():
            w = watch.Watch()
            try:
                self._stream_once(w)
            except ApiException as e:
                log.warning("watch failed (%s %s), restarting in %.0fs", e.status, e.reason, self.retry_delay)
                stop.wait(self.retry_delay)
            except Exception as e:
                log.error("watch stream broke, restarting in %.0fs: %s", self.retry_delay, e)
                stop.wait(self.retry_delay)
            finally:
                w.stop()
