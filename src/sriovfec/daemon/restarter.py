# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/restarter.py
from __future__ import annotations

import logging

from sriovfec.daemon.capabilities import PodStore
from sriovfec.daemon.errors import UpstreamMissingError, WorkloadRestartError

log = logging.getLogger("sriovfec")

DEVICE_PLUGIN_SELECTOR = "app=sriov-device-plugin-daemonset"


class DevicePluginRestarter:
    """
    Deletes the device plugin pod(s) on this node so the daemonset recreates
    them and they re-advertise the new VF layout.
    """

    def __init__(
        self,
        pods: PodStore,
        *,
        node_name: str,
        namespace: str,
        selector: str = DEVICE_PLUGIN_SELECTOR,
    ):
        self.pods = pods
        self.node_name = node_name
        self.namespace = namespace
        self.selector = selector

    def restart(self) -> int:
        try:
            items = self.pods.list_pods(self.namespace, self.selector)
        except Exception as e:
            raise WorkloadRestartError(f"failed to get pods ({self.selector}): {e}") from e

        local = [p for p in items if p.spec.node_name == self.node_name]
        if not local:
            raise UpstreamMissingError(
                f"no pods matching {self.selector} found on node {self.node_name}"
            )

        for pod in local:
            name = pod.metadata.name
            try:
                self.pods.delete_pod(self.namespace, name)
            except Exception as e:
                raise WorkloadRestartError(
                    f"failed to delete device plugin pod {self.namespace}/{name}: {e}"
                ) from e
            log.info("deleted device plugin pod %s/%s", self.namespace, name)

        return len(local)
