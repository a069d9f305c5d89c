# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/capabilities.py
from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List, Protocol

from sriovfec.resources.models import InventorySnapshot, NodeConfig, NodeConfigSpec


class Outcome(Enum):
    """Result of a remediation step run under exclusive node access."""

    COMPLETED = "completed"
    FAILED = "failed"
    # exclusive access is kept across the reboot
    PENDING_RESTART = "pending-restart"

    @property
    def releases_access(self) -> bool:
        return self is not Outcome.PENDING_RESTART


class InventoryReader(Protocol):
    def read_inventory(self) -> InventorySnapshot: ...


class HardwareConfigurator(Protocol):
    def missing_kernel_params(self) -> bool: ...

    def install_kernel_params(self) -> None: ...

    def request_reboot(self) -> None: ...

    def apply_config(self, spec: NodeConfigSpec) -> None: ...


class AccessCoordinator(Protocol):
    def run_exclusive(self, should_drain: bool, step: Callable[[], Outcome]) -> None: ...


class NodeConfigStore(Protocol):
    def get_node_config(self, namespace: str, name: str) -> NodeConfig: ...

    def create_node_config(self, node_config: NodeConfig) -> NodeConfig: ...

    def update_node_config_status(self, node_config: NodeConfig) -> NodeConfig: ...


class PodStore(Protocol):
    def list_pods(self, namespace: str, label_selector: str) -> List[Any]: ...

    def delete_pod(self, namespace: str, name: str) -> None: ...
