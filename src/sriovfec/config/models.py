# src/sriovfec/config/models.py

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AcceleratorDiscoveryConfig(BaseModel):
    """Which PCI devices count as supported accelerators (accelerators.json)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    vendor_ids: Dict[str, str] = Field(alias="VendorID")
    device_class: str = Field(alias="Class")
    device_subclass: str = Field(alias="SubClass")
    devices: Dict[str, str] = Field(alias="Devices")
    node_label: str = Field(default="", alias="NodeLabel")

    def matches(self, vendor: str, device: str, pci_class: str) -> bool:
        return (
            vendor in self.vendor_ids
            and device in self.devices
            and pci_class.startswith(self.device_class + self.device_subclass)
        )


class DaemonSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    node_name: str
    namespace: str = "vran-acceleration-operators"

    discovery_config_path: Path = Path("/sriov_config/config/accelerators.json")
    resync_period: float = 60.0
    api_timeout: float = 30.0                   # per API call deadline (seconds)
    drain_timeout: float = 300.0
    backoff_base: float = 1.0
    backoff_max: float = 300.0

    device_plugin_selector: str = "app=sriov-device-plugin-daemonset"
    required_kernel_params: List[str] = Field(
        default_factory=lambda: ["intel_iommu=on", "iommu=pt"]
    )

    sysfs_root: Path = Path("/sys")
    host_root: Path = Path("/host")
    kubeconfig: Optional[str] = None
    events_file: Optional[Path] = None
