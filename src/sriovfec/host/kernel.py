# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/host/kernel.py
from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Sequence

from sriovfec.daemon.errors import ConfigurationError

log = logging.getLogger("sriovfec")

DEFAULT_KERNEL_PARAMS = ("intel_iommu=on", "iommu=pt")


class KernelParamsController:
    """
    Checks /proc/cmdline for the IOMMU parameters SR-IOV needs and installs
    them into the host bootloader (grubby, run in the host root).
    """

    def __init__(
        self,
        *,
        required: Sequence[str] = DEFAULT_KERNEL_PARAMS,
        host_root: Path = Path("/host"),
        cmdline_path: Path = Path("/proc/cmdline"),
    ):
        self.required = list(required)
        self.host_root = Path(host_root)
        self.cmdline_path = Path(cmdline_path)

    def _run(self, argv: List[str]) -> str:
        cmd = ["chroot", str(self.host_root), *argv]
        log.debug("$ %s", shlex.join(cmd))
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        if proc.returncode != 0:
            raise ConfigurationError(
                f"{shlex.join(argv)} failed (rc={proc.returncode}): {(proc.stderr or proc.stdout).strip()}"
            )
        return proc.stdout

    def missing(self) -> List[str]:
        try:
            current = set(self.cmdline_path.read_text().split())
        except OSError as e:
            raise ConfigurationError(f"failed to read {self.cmdline_path}: {e}") from e
        return [p for p in self.required if p not in current]

    def missing_kernel_params(self) -> bool:
        missing = self.missing()
        if missing:
            log.info("missing kernel params: %s", " ".join(missing))
        return bool(missing)

    def install_kernel_params(self) -> None:
        missing = self.missing()
        if not missing:
            return
        self._run(["grubby", "--update-kernel=ALL", f"--args={' '.join(missing)}"])
        log.info("added kernel params: %s", " ".join(missing))

    def request_reboot(self) -> None:
        self._run(["systemctl", "reboot"])
