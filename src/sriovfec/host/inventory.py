# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/host/inventory.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from sriovfec.config.models import AcceleratorDiscoveryConfig
from sriovfec.daemon.errors import InventoryError
from sriovfec.resources.models import AcceleratorInfo, InventorySnapshot, VirtualFunction

log = logging.getLogger("sriovfec")

_VIRTFN = re.compile(r"^virtfn(\d+)$")


def _read_hex(path: Path) -> str:
    """'0x8086\\n' -> '8086'"""
    value = path.read_text().strip().lower()
    return value[2:] if value.startswith("0x") else value


def _driver(dev: Path) -> str:
    link = dev / "driver"
    return link.resolve().name if link.exists() else ""


class SysfsInventoryReader:
    """Discovers supported accelerators (and their VFs) from /sys/bus/pci."""

    def __init__(self, discovery: AcceleratorDiscoveryConfig, *, sysfs_root: Path = Path("/sys")):
        self.discovery = discovery
        self.devices_dir = Path(sysfs_root) / "bus" / "pci" / "devices"

    def _virtual_functions(self, pf: Path) -> List[VirtualFunction]:
        vfs = []
        for link in pf.iterdir():
            m = _VIRTFN.match(link.name)
            if not m:
                continue
            vf = link.resolve()
            vfs.append((int(m.group(1)), VirtualFunction(
                pci_address=vf.name,
                driver=_driver(vf),
                device_id=_read_hex(vf / "device"),
            )))
        return [vf for _, vf in sorted(vfs, key=lambda item: item[0])]

    def _accelerator(self, dev: Path) -> Optional[AcceleratorInfo]:
        vendor = _read_hex(dev / "vendor")
        device = _read_hex(dev / "device")
        pci_class = _read_hex(dev / "class")
        if not self.discovery.matches(vendor, device, pci_class):
            return None
        # VFs link back to their PF through physfn; report PFs only
        if (dev / "physfn").exists():
            return None

        total = dev / "sriov_totalvfs"
        return AcceleratorInfo(
            vendor_id=vendor,
            device_id=device,
            pci_address=dev.name,
            pf_driver=_driver(dev),
            max_virtual_functions=int(total.read_text().strip()) if total.exists() else 0,
            virtual_functions=tuple(self._virtual_functions(dev)),
        )

    def read_inventory(self) -> InventorySnapshot:
        try:
            accelerators = []
            for dev in sorted(self.devices_dir.iterdir(), key=lambda p: p.name):
                acc = self._accelerator(dev)
                if acc is not None:
                    accelerators.append(acc)
        except (OSError, ValueError) as e:
            raise InventoryError(f"failed to read PCI devices from {self.devices_dir}: {e}") from e

        log.debug("discovered %d accelerator(s)", len(accelerators))
        return InventorySnapshot(accelerators=tuple(accelerators))
