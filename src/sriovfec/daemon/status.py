# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/status.py
from __future__ import annotations

import logging
from typing import Optional

from sriovfec.daemon.capabilities import InventoryReader, NodeConfigStore
from sriovfec.observers.dispatcher import EventBus
from sriovfec.observers.events import StatusWriteFailed, new_ctx
from sriovfec.resources.models import (
    CONDITION_CONFIGURED,
    Condition,
    ConditionReason,
    ConditionStatus,
    InventorySnapshot,
    NodeConfig,
)

log = logging.getLogger("sriovfec")


class StatusConditionManager:
    """
    Sole writer of the SriovFecNodeConfig status subresource.

    Each write re-reads the inventory, upserts the Configured condition and
    persists the status. Write failures are logged and left to the next
    reconciliation.
    """

    def __init__(
        self,
        store: NodeConfigStore,
        inventory: InventoryReader,
        *,
        bus: Optional[EventBus] = None,
    ):
        self.store = store
        self.inventory = inventory
        self.bus = bus or EventBus()

    def _fresh_inventory(self, reason: ConditionReason, message: str) -> InventorySnapshot:
        try:
            return self.inventory.read_inventory()
        except Exception as e:
            log.error(
                "failed to obtain sriov inventory for the node reason=%s message=%s: %s",
                reason.value, message, e,
            )
            return InventorySnapshot()

    def set_status(
        self,
        node_config: NodeConfig,
        status: ConditionStatus,
        reason: ConditionReason,
        message: str,
        *,
        observed_generation: Optional[int] = None,
    ) -> NodeConfig:
        if observed_generation is None:
            observed_generation = node_config.generation

        condition = Condition(
            type=CONDITION_CONFIGURED,
            status=status,
            reason=reason,
            message=message,
            observed_generation=observed_generation,
        )

        node_config.status.inventory = self._fresh_inventory(reason, message)
        node_config.status.set_condition(condition)

        try:
            updated = self.store.update_node_config_status(node_config)
        except Exception as e:
            log.error(
                "failed to update SriovFecNodeConfig status reason=%s message=%s: %s",
                reason.value, message, e,
            )
            self.bus.emit(StatusWriteFailed(
                **new_ctx(node_config.name), reason=reason.value, error=str(e),
            ))
            return node_config

        node_config.metadata.resource_version = updated.metadata.resource_version
        log.debug(
            "status updated status=%s reason=%s observedGeneration=%d",
            status.value, reason.value, observed_generation,
        )
        return node_config
