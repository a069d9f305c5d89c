# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/resources/models.py

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

API_GROUP = "sriovfec.intel.com"
API_VERSION = "v2"
PLURAL = "sriovfecnodeconfigs"
KIND = "SriovFecNodeConfig"

CONDITION_CONFIGURED = "Configured"


class ResourceKey(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


# ---------------------------------------------------------------------
# Spec (desired state, owned by external editors)
# ---------------------------------------------------------------------
class PhysicalFunctionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pci_address: str = Field(alias="pciAddress")
    pf_driver: str = Field(alias="pfDriver")
    vf_driver: str = Field(alias="vfDriver")
    vf_amount: int = Field(default=0, ge=0, alias="vfAmount")
    bbdev_config: Optional[Dict[str, Any]] = Field(default=None, alias="bbDevConfig")


class NodeConfigSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    physical_functions: List[PhysicalFunctionConfig] = Field(
        default_factory=list, alias="physicalFunctions"
    )
    drain_skip: bool = Field(default=False, alias="drainSkip")


# ---------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------
class VirtualFunction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pci_address: str = Field(alias="pciAddress")
    driver: str = ""
    device_id: str = Field(default="", alias="deviceID")

    def _key(self) -> Tuple[str, str, str]:
        return (self.pci_address, self.driver, self.device_id)


class AcceleratorInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    vendor_id: str = Field(alias="vendorID")
    device_id: str = Field(alias="deviceID")
    pci_address: str = Field(alias="pciAddress")
    pf_driver: str = Field(default="", alias="driver")
    max_virtual_functions: int = Field(default=0, alias="maxVirtualFunctions")
    virtual_functions: Tuple[VirtualFunction, ...] = Field(
        default=(), alias="virtualFunctions"
    )

    def _key(self) -> tuple:
        return (
            self.vendor_id,
            self.device_id,
            self.pci_address,
            self.pf_driver,
            self.max_virtual_functions,
            tuple(vf._key() for vf in self.virtual_functions),
        )


class InventorySnapshot(BaseModel):
    """
    Discovered accelerators on this node.

    Equality compares the accelerators field by field so that a drift check
    never depends on incidental model state (aliases, unset defaults).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    accelerators: Tuple[AcceleratorInfo, ...] = Field(
        default=(), alias="sriovAccelerators"
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InventorySnapshot):
            return NotImplemented
        if len(self.accelerators) != len(other.accelerators):
            return False
        return all(a._key() == b._key() for a, b in zip(self.accelerators, other.accelerators))

    def __hash__(self) -> int:
        return hash(tuple(a._key() for a in self.accelerators))

    def summary(self) -> str:
        if not self.accelerators:
            return "no accelerators"
        return ", ".join(
            f"{a.pci_address} ({a.device_id}, vfs={len(a.virtual_functions)}/{a.max_virtual_functions})"
            for a in self.accelerators
        )


# ---------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------
class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(str, Enum):
    UNKNOWN = "Unknown"
    IN_PROGRESS = "InProgress"
    FAILED = "Failed"
    NOT_REQUESTED = "NotRequested"
    SUCCEEDED = "Succeeded"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Condition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    status: ConditionStatus
    reason: ConditionReason
    message: str = ""
    observed_generation: int = Field(default=0, alias="observedGeneration")
    last_transition_time: str = Field(default_factory=_now, alias="lastTransitionTime")


class NodeConfigStatus(BaseModel):
    """
    Status subresource.

    Conditions are kept in a dict keyed by type so an update can only ever
    replace the entry of that type; the list form exists only on the wire.
    """

    inventory: InventorySnapshot = Field(default_factory=InventorySnapshot)
    conditions: Dict[str, Condition] = Field(default_factory=dict)

    def condition(self, ctype: str = CONDITION_CONFIGURED) -> Optional[Condition]:
        return self.conditions.get(ctype)

    def set_condition(self, condition: Condition) -> None:
        existing = self.conditions.get(condition.type)
        if existing is not None and existing.status == condition.status:
            condition = condition.model_copy(
                update={"last_transition_time": existing.last_transition_time}
            )
        self.conditions[condition.type] = condition

    def to_body(self) -> Dict[str, Any]:
        return {
            "inventory": self.inventory.model_dump(mode="json", by_alias=True),
            "conditions": [
                c.model_dump(mode="json", by_alias=True) for c in self.conditions.values()
            ],
        }

    @classmethod
    def from_body(cls, body: Optional[Dict[str, Any]]) -> "NodeConfigStatus":
        body = body or {}
        conditions: Dict[str, Condition] = {}
        for raw in body.get("conditions") or []:
            c = Condition.model_validate(raw)
            conditions[c.type] = c
        return cls(
            inventory=InventorySnapshot.model_validate(body.get("inventory") or {}),
            conditions=conditions,
        )


# ---------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------
class ObjectMeta(BaseModel):
    name: str
    namespace: str
    generation: int = 0
    resource_version: Optional[str] = None


class NodeConfig(BaseModel):
    metadata: ObjectMeta
    spec: NodeConfigSpec = Field(default_factory=NodeConfigSpec)
    status: NodeConfigStatus = Field(default_factory=NodeConfigStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def generation(self) -> int:
        return self.metadata.generation

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.metadata.namespace, self.metadata.name)

    @classmethod
    def empty(cls, name: str, namespace: str) -> "NodeConfig":
        return cls(metadata=ObjectMeta(name=name, namespace=namespace))

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "NodeConfig":
        meta = body.get("metadata") or {}
        return cls(
            metadata=ObjectMeta(
                name=meta["name"],
                namespace=meta.get("namespace", ""),
                generation=int(meta.get("generation") or 0),
                resource_version=meta.get("resourceVersion"),
            ),
            spec=NodeConfigSpec.model_validate(body.get("spec") or {}),
            status=NodeConfigStatus.from_body(body.get("status")),
        )

    def to_body(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "name": self.metadata.name,
            "namespace": self.metadata.namespace,
        }
        if self.metadata.resource_version:
            metadata["resourceVersion"] = self.metadata.resource_version
        return {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": KIND,
            "metadata": metadata,
            "spec": self.spec.model_dump(mode="json", by_alias=True, exclude_none=True),
            "status": self.status.to_body(),
        }
