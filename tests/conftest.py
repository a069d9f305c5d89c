import types
from typing import Dict, List

import pytest

from sriovfec.daemon.capabilities import Outcome
from sriovfec.daemon.reconciler import NodeConfigReconciler
from sriovfec.daemon.restarter import DevicePluginRestarter
from sriovfec.k8s.client import ConflictError, NotFoundError
from sriovfec.observers.dispatcher import EventBus
from sriovfec.resources.models import (
    AcceleratorInfo,
    InventorySnapshot,
    NodeConfig,
    NodeConfigSpec,
    PhysicalFunctionConfig,
    ResourceKey,
    VirtualFunction,
)

NODE = "worker-1"
NS = "vran-acceleration-operators"
KEY = ResourceKey(NS, NODE)


# ----------------- Fakes -----------------

class FakeStore:
    """
    In-memory SriovFecNodeConfig API: spec edits bump generation, status
    writes don't. Status writes on a stale resourceVersion get a 409.
    """

    def __init__(self):
        self.objects: Dict[ResourceKey, NodeConfig] = {}
        self.creates: List[NodeConfig] = []
        self.status_writes: List[NodeConfig] = []
        self.fail_get = None
        self.fail_status = None
        self._rv = 0

    def _bump(self, nc: NodeConfig) -> None:
        self._rv += 1
        nc.metadata.resource_version = str(self._rv)

    def seed(self, name=NODE, namespace=NS, spec=None, generation=1) -> NodeConfig:
        nc = NodeConfig.empty(name, namespace)
        nc.metadata.generation = generation
        if spec is not None:
            nc.spec = spec
        self._bump(nc)
        self.objects[nc.key] = nc
        return nc.model_copy(deep=True)

    def edit_spec(self, key: ResourceKey, spec: NodeConfigSpec) -> None:
        nc = self.objects[key]
        nc.spec = spec
        nc.metadata.generation += 1
        self._bump(nc)

    def get_node_config(self, namespace, name):
        if self.fail_get is not None:
            raise self.fail_get
        key = ResourceKey(namespace, name)
        if key not in self.objects:
            raise NotFoundError(f"get {key} failed: 404 Not Found", 404)
        return self.objects[key].model_copy(deep=True)

    def create_node_config(self, node_config):
        if node_config.key in self.objects:
            raise ConflictError("already exists", 409)
        nc = node_config.model_copy(deep=True)
        nc.metadata.generation = 1
        self._bump(nc)
        self.objects[nc.key] = nc
        self.creates.append(nc.model_copy(deep=True))
        return nc.model_copy(deep=True)

    def update_node_config_status(self, node_config):
        if self.fail_status is not None:
            raise self.fail_status
        stored = self.objects[node_config.key]
        if node_config.metadata.resource_version != stored.metadata.resource_version:
            raise ConflictError(
                f"update status of {node_config.key} failed: 409 Conflict", 409,
            )
        stored.status = node_config.status.model_copy(deep=True)
        self._bump(stored)
        self.status_writes.append(stored.model_copy(deep=True))
        return stored.model_copy(deep=True)

    def current(self, key: ResourceKey = KEY) -> NodeConfig:
        return self.objects[key]


class FakeInventory:
    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot if snapshot is not None else InventorySnapshot()
        self.error = error
        self.reads = 0

    def read_inventory(self):
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


class FakeConfigurator:
    def __init__(self, missing=False, check_error=None, apply_error=None):
        self.missing = missing
        self.check_error = check_error
        self.apply_error = apply_error
        self.calls: List[str] = []
        self.applied: List[NodeConfigSpec] = []
        self.on_apply = None

    def missing_kernel_params(self):
        self.calls.append("check")
        if self.check_error is not None:
            raise self.check_error
        return self.missing

    def install_kernel_params(self):
        self.calls.append("install")

    def request_reboot(self):
        self.calls.append("reboot")

    def apply_config(self, spec):
        self.calls.append("apply")
        if self.apply_error is not None:
            raise self.apply_error
        self.applied.append(spec)
        if self.on_apply:
            self.on_apply()


class FakeCoordinator:
    """Runs the step inline and records whether access would be released."""

    def __init__(self, error=None):
        self.error = error
        self.calls: List[bool] = []
        self.outcomes: List[Outcome] = []
        self.held = False

    def run_exclusive(self, should_drain, step):
        self.calls.append(should_drain)
        if self.error is not None:
            raise self.error
        self.held = True
        outcome = step()
        self.outcomes.append(outcome)
        if outcome.releases_access:
            self.held = False


def pod(name, node, namespace=NS):
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(name=name, namespace=namespace),
        spec=types.SimpleNamespace(node_name=node),
    )


class FakePods:
    def __init__(self, pods=None, delete_error=None, list_error=None):
        self.pods = list(pods or [])
        self.deleted: List[str] = []
        self.delete_error = delete_error
        self.list_error = list_error
        self.selectors: List[str] = []

    def list_pods(self, namespace, label_selector):
        self.selectors.append(label_selector)
        if self.list_error is not None:
            raise self.list_error
        return [p for p in self.pods if p.metadata.namespace == namespace]

    def delete_pod(self, namespace, name):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(name)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


# ----------------- Builders -----------------

def accelerator(pci="0000:1f:00.0", vfs=0):
    return AcceleratorInfo(
        vendor_id="8086",
        device_id="0d5c",
        pci_address=pci,
        pf_driver="pci-pf-stub",
        max_virtual_functions=16,
        virtual_functions=tuple(
            VirtualFunction(pci_address=f"0000:20:00.{i}", driver="vfio-pci", device_id="0d5d")
            for i in range(vfs)
        ),
    )


def one_pf_spec(vf_amount=2, drain_skip=False):
    return NodeConfigSpec(
        physical_functions=[
            PhysicalFunctionConfig(
                pci_address="0000:1f:00.0",
                pf_driver="pci-pf-stub",
                vf_driver="vfio-pci",
                vf_amount=vf_amount,
            )
        ],
        drain_skip=drain_skip,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def inventory():
    return FakeInventory(InventorySnapshot(accelerators=(accelerator(),)))


@pytest.fixture
def configurator():
    return FakeConfigurator()


@pytest.fixture
def coordinator():
    return FakeCoordinator()


@pytest.fixture
def pods():
    return FakePods([pod("device-plugin-abc", NODE), pod("device-plugin-xyz", "worker-2")])


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def reconciler(store, inventory, configurator, coordinator, pods, capture):
    return NodeConfigReconciler(
        store,
        node_name=NODE,
        namespace=NS,
        inventory=inventory,
        configurator=configurator,
        coordinator=coordinator,
        restarter=DevicePluginRestarter(pods, node_name=NODE, namespace=NS),
        bus=EventBus([capture]),
    )
