# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/host/configurator.py
from __future__ import annotations

import logging
from pathlib import Path

from sriovfec.daemon.errors import ConfigurationError
from sriovfec.host.kernel import KernelParamsController
from sriovfec.resources.models import NodeConfigSpec, PhysicalFunctionConfig

log = logging.getLogger("sriovfec")


class NodeConfigurator:
    """Applies PF/VF layout through sysfs; kernel steps are delegated."""

    def __init__(self, kernel: KernelParamsController, *, sysfs_root: Path = Path("/sys")):
        self.kernel = kernel
        self.pci = Path(sysfs_root) / "bus" / "pci"

    def missing_kernel_params(self) -> bool:
        return self.kernel.missing_kernel_params()

    def install_kernel_params(self) -> None:
        self.kernel.install_kernel_params()

    def request_reboot(self) -> None:
        self.kernel.request_reboot()

    def _write(self, path: Path, value: str) -> None:
        try:
            path.write_text(value)
        except OSError as e:
            raise ConfigurationError(f"failed to write {value!r} to {path}: {e}") from e

    def _bind(self, dev: Path, driver: str) -> None:
        current = dev / "driver"
        if current.exists():
            if current.resolve().name == driver:
                return
            self._write(current / "unbind", dev.name)
        self._write(dev / "driver_override", driver)
        self._write(self.pci / "drivers_probe", dev.name)
        log.info("PF %s bound to %s", dev.name, driver)

    def _configure_pf(self, pf: PhysicalFunctionConfig) -> None:
        dev = self.pci / "devices" / pf.pci_address
        if not dev.exists():
            raise ConfigurationError(f"PF {pf.pci_address} not found on this node")

        total = dev / "sriov_totalvfs"
        if total.exists() and pf.vf_amount > int(total.read_text().strip()):
            raise ConfigurationError(
                f"PF {pf.pci_address}: {pf.vf_amount} VFs requested, "
                f"{total.read_text().strip()} supported"
            )

        self._bind(dev, pf.pf_driver)

        # the kernel refuses to change a non-zero VF count directly
        self._write(dev / "sriov_numvfs", "0")
        if pf.vf_amount == 0:
            log.info("PF %s: VFs disabled", pf.pci_address)
            return
        self._write(dev / "sriov_numvfs", str(pf.vf_amount))

        for link in sorted(dev.glob("virtfn*")):
            vf = link.resolve()
            self._write(vf / "driver_override", pf.vf_driver)
            self._write(self.pci / "drivers_probe", vf.name)
        log.info("PF %s: %d VFs bound to %s", pf.pci_address, pf.vf_amount, pf.vf_driver)

    def apply_config(self, spec: NodeConfigSpec) -> None:
        for pf in spec.physical_functions:
            self._configure_pf(pf)
