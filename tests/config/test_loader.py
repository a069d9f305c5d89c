from pathlib import Path
import json
import textwrap

import pytest

from sriovfec.config.loader import ENV_FIELDS, ConfigError, load_discovery_config, load_settings

ACCELERATORS = {
    "VendorID": {"8086": "Intel Corporation"},
    "Class": "12",
    "SubClass": "00",
    "Devices": {"0d5c": "ACC100", "0d8f": "FPGA_5GNR"},
    "NodeLabel": "fpga.intel.com/intel-accelerator-present",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_FIELDS:
        monkeypatch.delenv(var, raising=False)


def test_load_discovery_config_json(tmp_path: Path):
    f = tmp_path / "accelerators.json"
    f.write_text(json.dumps(ACCELERATORS))

    cfg = load_discovery_config(f)
    assert cfg.vendor_ids == {"8086": "Intel Corporation"}
    assert cfg.matches("8086", "0d5c", "120000")
    assert not cfg.matches("8086", "0d5c", "020000")
    assert not cfg.matches("15b3", "0d5c", "120000")
    assert not cfg.matches("8086", "1572", "120000")


def test_discovery_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="failed to read"):
        load_discovery_config(tmp_path / "nope.json")


def test_discovery_config_missing_field(tmp_path: Path):
    f = tmp_path / "accelerators.json"
    f.write_text(json.dumps({"VendorID": {"8086": "Intel"}}))
    with pytest.raises(ConfigError, match="invalid discovery config"):
        load_discovery_config(f)


def test_load_settings_defaults_from_env(monkeypatch):
    monkeypatch.setenv("NODE_NAME", "worker-1")
    s = load_settings()
    assert s.node_name == "worker-1"
    assert s.namespace == "vran-acceleration-operators"
    assert s.resync_period == 60.0
    assert s.required_kernel_params == ["intel_iommu=on", "iommu=pt"]


def test_load_settings_precedence(tmp_path: Path, monkeypatch):
    f = tmp_path / "daemon.yaml"
    f.write_text(textwrap.dedent("""
        node_name: from-file
        resync_period: 10
        sysfs_root: ${SYSFS_FIXTURE}
    """))
    monkeypatch.setenv("SYSFS_FIXTURE", "/tmp/fake-sys")
    monkeypatch.setenv("SRIOVFEC_RESYNC_PERIOD", "20")

    s = load_settings(f, node_name="from-flag", namespace=None)
    assert s.node_name == "from-flag"
    assert s.resync_period == 20.0
    assert s.sysfs_root == Path("/tmp/fake-sys")
    assert s.namespace == "vran-acceleration-operators"


def test_load_settings_requires_node_name():
    with pytest.raises(ConfigError, match="invalid daemon settings"):
        load_settings()


def test_load_settings_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="does not exist"):
        load_settings(tmp_path / "missing.yaml", node_name="worker-1")
