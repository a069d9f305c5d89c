# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/reconciler.py
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from sriovfec.daemon.capabilities import (
    AccessCoordinator,
    HardwareConfigurator,
    InventoryReader,
    NodeConfigStore,
    Outcome,
)
from sriovfec.daemon.errors import (
    ConfigurationError,
    CoordinationError,
    DaemonError,
    InventoryError,
)
from sriovfec.daemon.restarter import DevicePluginRestarter
from sriovfec.daemon.status import StatusConditionManager
from sriovfec.k8s.client import ConflictError, NotFoundError
from sriovfec.observers.dispatcher import EventBus
from sriovfec.observers.events import (
    ConfigurationFailed,
    ConfigurationStarted,
    ConfigurationSucceeded,
    InventoryDriftDetected,
    NodeConfigCreated,
    RebootRequested,
    ReconcileStarted,
    new_ctx,
)
from sriovfec.resources.models import (
    ConditionReason,
    ConditionStatus,
    NodeConfig,
    NodeConfigSpec,
    ResourceKey,
)

log = logging.getLogger("sriovfec")

RESYNC_PERIOD = 60.0

# a pass that ended on one of these for the current generation did not finish
# (reboot pending, or exclusive access could not be obtained) and is resumed
RESUMABLE_REASONS = frozenset({ConditionReason.IN_PROGRESS, ConditionReason.UNKNOWN})


@dataclass(frozen=True)
class Result:
    requeue_after: Optional[float] = None


class RemediationStep:
    """
    The work done while the node is held exclusively.

    Called by the access coordinator; records the first functional error so
    the reconciler can turn it into a Failed condition afterwards.

    With `after_reboot` set the kernel parameters were already installed and
    the node restarted for this generation; if they are still missing the
    step fails instead of rebooting again.
    """

    def __init__(
        self,
        configurator: HardwareConfigurator,
        restarter: DevicePluginRestarter,
        spec: NodeConfigSpec,
        *,
        after_reboot: bool = False,
    ):
        self.configurator = configurator
        self.restarter = restarter
        self.spec = spec
        self.after_reboot = after_reboot
        self.outcome: Optional[Outcome] = None
        self.error: Optional[Exception] = None

    def _fail(self, msg: str, e: Exception) -> Outcome:
        log.error("%s: %s", msg, e)
        self.error = e
        self.outcome = Outcome.FAILED
        return self.outcome

    def __call__(self) -> Outcome:
        try:
            missing = self.configurator.missing_kernel_params()
        except Exception as e:
            return self._fail("failed to check for missing kernel params", e)

        if missing and self.after_reboot:
            return self._fail(
                "refusing to reboot again",
                ConfigurationError("kernel params still missing after reboot"),
            )

        if missing:
            log.info("missing kernel params")
            try:
                self.configurator.install_kernel_params()
            except Exception as e:
                return self._fail("failed to add missing kernel params", e)

            log.info("added kernel params - rebooting")
            try:
                self.configurator.request_reboot()
            except Exception as e:
                return self._fail("failed to request a node reboot", e)

            # leave the node cordoned until it comes back
            self.outcome = Outcome.PENDING_RESTART
            return self.outcome

        try:
            self.configurator.apply_config(self.spec)
        except Exception as e:
            return self._fail("failed applying new PF/VF configuration", e)

        try:
            self.restarter.restart()
        except Exception as e:
            return self._fail("failed to restart the device plugin", e)

        self.outcome = Outcome.COMPLETED
        return self.outcome


class NodeConfigReconciler:
    """
    Drives this node's accelerators toward its SriovFecNodeConfig spec.

    The controller guarantees a single reconcile in flight for the key, so
    the status writes below never interleave.
    """

    def __init__(
        self,
        store: NodeConfigStore,
        *,
        node_name: str,
        namespace: str,
        inventory: InventoryReader,
        configurator: HardwareConfigurator,
        coordinator: AccessCoordinator,
        restarter: DevicePluginRestarter,
        status: Optional[StatusConditionManager] = None,
        bus: Optional[EventBus] = None,
        resync_period: float = RESYNC_PERIOD,
    ):
        self.store = store
        self.node_name = node_name
        self.namespace = namespace
        self.inventory = inventory
        self.configurator = configurator
        self.coordinator = coordinator
        self.restarter = restarter
        self.bus = bus or EventBus()
        self.status = status or StatusConditionManager(store, inventory, bus=self.bus)
        self.resync_period = resync_period

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.node_name)

    def _resync(self) -> Result:
        return Result(requeue_after=self.resync_period)

    # ------------------------------------------------------------------
    # Placeholder creation
    # ------------------------------------------------------------------
    def ensure_node_config(self) -> None:
        """
        Create an empty SriovFecNodeConfig for this node unless it exists.

        Safe to call before the watch loop starts and from reconcile().
        """
        try:
            self.store.get_node_config(self.namespace, self.node_name)
            log.info("SriovFecNodeConfig %s already exists", self.key)
            return
        except NotFoundError:
            pass

        log.info("SriovFecNodeConfig %s not found - creating", self.key)
        try:
            self.store.create_node_config(NodeConfig.empty(self.node_name, self.namespace))
        except ConflictError:
            log.info("SriovFecNodeConfig %s created concurrently", self.key)
            return
        self.bus.emit(NodeConfigCreated(**new_ctx(self.node_name), namespace=self.namespace))

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------
    def reconcile(self, key: ResourceKey) -> Result:
        run_id = str(uuid.uuid4())
        self.bus.emit(ReconcileStarted(**new_ctx(self.node_name, run_id), key=str(key)))

        try:
            node_config = self.store.get_node_config(key.namespace, key.name)
        except NotFoundError:
            self.ensure_node_config()
            return Result()

        try:
            inv = self.inventory.read_inventory()
        except Exception as e:
            log.error("failed to obtain sriov inventory for the node: %s", e)
            # nothing was acted upon; keep the generation pending so a retry applies it
            prior = node_config.status.condition()
            self.status.set_status(
                node_config,
                ConditionStatus.FALSE,
                ConditionReason.FAILED,
                str(e),
                observed_generation=(
                    prior.observed_generation if prior is not None
                    else max(node_config.generation - 1, 0)
                ),
            )
            if isinstance(e, DaemonError):
                raise
            raise InventoryError(str(e)) from e

        current = node_config.status.condition()
        after_reboot = False
        if current is not None:
            if inv != node_config.status.inventory:
                log.info("updating inventory")
                self.bus.emit(InventoryDriftDetected(**new_ctx(self.node_name, run_id), inventory=inv.summary()))
                # keep observedGeneration so a pending spec change is still acted on
                self.status.set_status(
                    node_config,
                    current.status,
                    current.reason,
                    current.message,
                    observed_generation=current.observed_generation,
                )
                return self._resync()

            if (
                current.observed_generation == node_config.generation
                and current.reason not in RESUMABLE_REASONS
            ):
                return self._resync()

            # InProgress for this generation means the last pass ended in a reboot
            after_reboot = (
                current.observed_generation == node_config.generation
                and current.reason is ConditionReason.IN_PROGRESS
            )
            self.status.set_status(
                node_config, ConditionStatus.FALSE, ConditionReason.IN_PROGRESS, "Configuration started"
            )

        if not node_config.spec.physical_functions:
            log.info("Nothing to do")
            self.status.set_status(
                node_config, ConditionStatus.FALSE, ConditionReason.NOT_REQUESTED, "Inventory up to date"
            )
            return self._resync()

        return self._remediate(key, node_config, run_id, after_reboot=after_reboot)

    def _remediate(
        self, key: ResourceKey, node_config: NodeConfig, run_id: str, *, after_reboot: bool = False,
    ) -> Result:
        generation = node_config.generation
        started = time.monotonic()
        self.bus.emit(ConfigurationStarted(
            **new_ctx(self.node_name, run_id),
            generation=generation,
            physical_functions=len(node_config.spec.physical_functions),
        ))

        step = RemediationStep(
            self.configurator, self.restarter, node_config.spec, after_reboot=after_reboot,
        )
        coordination_error: Optional[Exception] = None
        try:
            self.coordinator.run_exclusive(not node_config.spec.drain_skip, step)
        except Exception as e:
            coordination_error = e

        if step.outcome is Outcome.PENDING_RESTART:
            log.info("status update skipped - CR will be handled again after node reboot")
            self.bus.emit(RebootRequested(**new_ctx(self.node_name, run_id), generation=generation))
            return Result()

        if coordination_error is not None:
            log.error("access coordinator returned an error: %s", coordination_error)
            self._failed(node_config, ConditionReason.UNKNOWN, coordination_error, run_id)
            if isinstance(coordination_error, DaemonError):
                raise coordination_error
            raise CoordinationError(str(coordination_error)) from coordination_error

        if step.error is not None:
            log.error("error during configuration: %s", step.error)
            self._failed(node_config, ConditionReason.FAILED, step.error, run_id)
            if isinstance(step.error, DaemonError):
                raise step.error
            raise ConfigurationError(str(step.error)) from step.error

        try:
            latest = self.store.get_node_config(key.namespace, key.name)
        except Exception as e:
            log.error("Get() of %s after configuration failed: %s", key, e)
            self._failed(node_config, ConditionReason.UNKNOWN, e, run_id)
            raise

        self.status.set_status(
            latest,
            ConditionStatus.TRUE,
            ConditionReason.SUCCEEDED,
            "Configured successfully",
            observed_generation=generation,
        )
        self.bus.emit(ConfigurationSucceeded(
            **new_ctx(self.node_name, run_id),
            generation=generation,
            duration_ms=int((time.monotonic() - started) * 1000),
        ))
        log.info("Reconciled")
        return self._resync()

    def _failed(self, node_config: NodeConfig, reason: ConditionReason, error: Exception, run_id: str) -> None:
        self.status.set_status(node_config, ConditionStatus.FALSE, reason, str(error))
        self.bus.emit(ConfigurationFailed(
            **new_ctx(self.node_name, run_id),
            generation=node_config.generation,
            reason=reason.value,
            error=str(error),
        ))
