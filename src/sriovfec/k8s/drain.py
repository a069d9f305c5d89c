# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/k8s/drain.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Set, Tuple

from sriovfec.daemon.capabilities import Outcome
from sriovfec.daemon.errors import CoordinationError
from sriovfec.k8s.client import KubeApiError, KubeClient, NotFoundError

log = logging.getLogger("sriovfec")

MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"


def _is_evictable(pod: Any) -> bool:
    if pod.status is not None and pod.status.phase in ("Succeeded", "Failed"):
        return False
    annotations = pod.metadata.annotations or {}
    if MIRROR_POD_ANNOTATION in annotations:
        return False
    for ref in pod.metadata.owner_references or []:
        if ref.kind == "DaemonSet":
            return False
    return True


class DrainCoordinator:
    """
    Exclusive node access: cordon, optionally drain, run the step, uncordon.

    The node stays cordoned when the step returns PENDING_RESTART; the pass
    that runs after the reboot uncordons it.
    """

    def __init__(
        self,
        kube: KubeClient,
        *,
        node_name: str,
        drain_timeout: float = 300.0,
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.kube = kube
        self.node_name = node_name
        self.drain_timeout = drain_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def _cordon(self, unschedulable: bool) -> None:
        verb = "cordon" if unschedulable else "uncordon"
        try:
            self.kube.set_node_unschedulable(self.node_name, unschedulable)
        except KubeApiError as e:
            raise CoordinationError(f"failed to {verb} node {self.node_name}: {e}") from e
        log.info("node %s %sed", self.node_name, verb)

    def _evictable_pods(self) -> List[Tuple[str, str]]:
        return [
            (p.metadata.namespace, p.metadata.name)
            for p in self.kube.list_pods_on_node(self.node_name)
            if _is_evictable(p)
        ]

    def drain(self) -> None:
        deadline = self._clock() + self.drain_timeout
        try:
            pending: Set[Tuple[str, str]] = set(self._evictable_pods())
            log.info("draining node %s (%d pods)", self.node_name, len(pending))

            while pending:
                for ns, name in sorted(pending):
                    try:
                        self.kube.evict_pod(ns, name)
                    except NotFoundError:
                        continue
                    except KubeApiError as e:
                        # 429: blocked by a PodDisruptionBudget, try again next round
                        if e.status != 429:
                            raise
                        log.debug("eviction of %s/%s blocked by disruption budget", ns, name)

                remaining = set(self._evictable_pods())
                pending &= remaining
                if not pending:
                    break
                if self._clock() >= deadline:
                    raise CoordinationError(
                        f"timed out draining node {self.node_name}: "
                        + ", ".join(f"{ns}/{n}" for ns, n in sorted(pending))
                    )
                self._sleep(self.poll_interval)
        except KubeApiError as e:
            raise CoordinationError(f"failed to drain node {self.node_name}: {e}") from e
        log.info("node %s drained", self.node_name)

    def run_exclusive(self, should_drain: bool, step: Callable[[], Outcome]) -> None:
        self._cordon(True)

        if should_drain:
            try:
                self.drain()
            except CoordinationError:
                self._release_after_failure()
                raise

        try:
            outcome = step()
        except Exception:
            self._release_after_failure()
            raise

        if not outcome.releases_access:
            log.info("keeping node %s cordoned until it restarts", self.node_name)
            return

        self._cordon(False)

    def _release_after_failure(self) -> None:
        try:
            self._cordon(False)
        except CoordinationError as e:
            log.error("%s", e)
