# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/cli/app.py
from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import List, Optional

import typer

from sriovfec.config.loader import ConfigError, load_discovery_config, load_settings
from sriovfec.config.models import DaemonSettings
from sriovfec.controller.controller import Controller
from sriovfec.daemon.predicates import node_event_filter
from sriovfec.daemon.reconciler import NodeConfigReconciler
from sriovfec.daemon.restarter import DevicePluginRestarter
from sriovfec.host.configurator import NodeConfigurator
from sriovfec.host.inventory import SysfsInventoryReader
from sriovfec.host.kernel import KernelParamsController
from sriovfec.k8s.client import KubeApiError, KubeClient, NotFoundError, load_kube_clients
from sriovfec.k8s.drain import DrainCoordinator
from sriovfec.k8s.watch import NodeConfigWatcher
from sriovfec.logging.log import init_logging
from sriovfec.observers.dispatcher import EventBus
from sriovfec.observers.jsonfile import JsonFileObserver
from sriovfec.observers.logger import LoggerObserver
from sriovfec.utils.retry import retry

log = logging.getLogger("sriovfec")


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="SR-IOV FEC node configuration daemon")


def _settings(settings_file: Optional[Path], **overrides) -> DaemonSettings:
    try:
        return load_settings(settings_file, **overrides)
    except ConfigError as e:
        typer.secho(f"❌ {e}", fg="red", err=True)
        raise typer.Exit(code=2)


# ------------------------------------------------------------------------------
# Helpers (wiring)
# ------------------------------------------------------------------------------

def build_reconciler(settings: DaemonSettings, kube: KubeClient, bus: EventBus) -> NodeConfigReconciler:
    # loaded once; every component below shares this instance
    discovery = load_discovery_config(settings.discovery_config_path)

    inventory = SysfsInventoryReader(discovery, sysfs_root=settings.sysfs_root)
    kernel = KernelParamsController(
        required=settings.required_kernel_params,
        host_root=settings.host_root,
    )
    configurator = NodeConfigurator(kernel, sysfs_root=settings.sysfs_root)
    coordinator = DrainCoordinator(
        kube,
        node_name=settings.node_name,
        drain_timeout=settings.drain_timeout,
    )
    restarter = DevicePluginRestarter(
        kube,
        node_name=settings.node_name,
        namespace=settings.namespace,
        selector=settings.device_plugin_selector,
    )
    return NodeConfigReconciler(
        kube,
        node_name=settings.node_name,
        namespace=settings.namespace,
        inventory=inventory,
        configurator=configurator,
        coordinator=coordinator,
        restarter=restarter,
        bus=bus,
        resync_period=settings.resync_period,
    )


def _log_retry(attempt: int, exc: Exception) -> None:
    log.warning("attempt %d to create the node config failed: %s", attempt, exc)


@retry(retries=6, delay=2, backoff=2, max_delay=30, retry_on=(KubeApiError,), on_retry=_log_retry)
def ensure_node_config(reconciler: NodeConfigReconciler) -> None:
    reconciler.ensure_node_config()


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def run(
    node_name: Optional[str] = typer.Option(None, "--node-name", help="Defaults to $NODE_NAME"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Defaults to $NAMESPACE"),
    settings_file: Optional[Path] = typer.Option(None, "--settings", help="Daemon settings YAML"),
    discovery_config: Optional[Path] = typer.Option(None, "--discovery-config"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
    verbose: bool = typer.Option(False, "--verbose"),
):
    """Run the reconciliation loop for this node until SIGTERM."""
    logger, run_id = init_logging(log_dir=log_dir, verbose=verbose)
    settings = _settings(
        settings_file,
        node_name=node_name,
        namespace=namespace,
        discovery_config_path=discovery_config,
        kubeconfig=kubeconfig,
    )
    logger.info("node=%s namespace=%s", settings.node_name, settings.namespace)

    observers: List = [LoggerObserver(logger)]
    if settings.events_file:
        observers.append(JsonFileObserver(settings.events_file))
    bus = EventBus(observers)

    custom_api, core_api = load_kube_clients(settings.kubeconfig)
    kube = KubeClient(custom_api, core_api, request_timeout=settings.api_timeout)

    try:
        reconciler = build_reconciler(settings, kube, bus)
    except ConfigError as e:
        typer.secho(f"❌ {e}", fg="red", err=True)
        raise typer.Exit(code=2)

    # before the watch starts, so the first event is for an existing object
    ensure_node_config(reconciler)

    controller = Controller(
        reconciler,
        node_event_filter(settings.node_name),
        backoff_base=settings.backoff_base,
        backoff_max=settings.backoff_max,
    )
    watcher = NodeConfigWatcher(custom_api, settings.namespace, controller.handle)

    stop = threading.Event()

    def _shutdown(signum, _frame):
        logger.info("received signal %d - shutting down", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    threading.Thread(target=watcher.run, args=(stop,), name="watch", daemon=True).start()
    controller.enqueue(reconciler.key)
    controller.run(stop)


@app.command()
def status(
    node_name: Optional[str] = typer.Option(None, "--node-name", help="Defaults to $NODE_NAME"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Defaults to $NAMESPACE"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig"),
):
    """Print this node's Configured condition and inventory."""
    settings = _settings(None, node_name=node_name, namespace=namespace, kubeconfig=kubeconfig)
    custom_api, core_api = load_kube_clients(settings.kubeconfig)
    kube = KubeClient(custom_api, core_api, request_timeout=settings.api_timeout)

    try:
        nc = kube.get_node_config(settings.namespace, settings.node_name)
    except NotFoundError:
        typer.secho(f"SriovFecNodeConfig {settings.namespace}/{settings.node_name} not found", fg="yellow")
        raise typer.Exit(code=1)

    cond = nc.status.condition()
    typer.echo(f"node:        {nc.name} (generation {nc.generation})")
    typer.echo(f"PFs desired: {len(nc.spec.physical_functions)} (drainSkip={nc.spec.drain_skip})")
    if cond is None:
        typer.echo("Configured:  <no condition yet>")
    else:
        color = "green" if cond.status.value == "True" else "red" if cond.reason.value == "Failed" else None
        typer.secho(
            f"Configured:  {cond.status.value} reason={cond.reason.value} "
            f"observedGeneration={cond.observed_generation} message={cond.message!r}",
            fg=color,
        )
    typer.echo(f"inventory:   {nc.status.inventory.summary()}")


if __name__ == "__main__":
    app()
