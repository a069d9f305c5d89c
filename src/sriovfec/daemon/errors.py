# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/errors.py


class DaemonError(RuntimeError):
    """Base class for node daemon failures."""


class TransientInfraError(DaemonError):
    """Inventory or API read failed; expected to heal on retry or resync."""


class InventoryError(TransientInfraError):
    """Raised when the accelerator inventory cannot be read."""


class ConfigurationError(DaemonError):
    """Kernel parameter or hardware apply step failed."""


class CoordinationError(DaemonError):
    """Exclusive node access (cordon/drain/uncordon) could not be managed."""


class UpstreamMissingError(DaemonError):
    """The dependent workload is not running where it is expected."""


class WorkloadRestartError(DaemonError):
    """Listing or deleting the dependent workload failed."""
