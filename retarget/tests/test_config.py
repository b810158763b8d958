from __future__ import annotations

import pytest

from retarget import config as rconfig
from retarget.errors import ConfigError, ParamsError
from retarget.params import MAINNET_PARAMS, TESTNET_PARAMS
from retarget.types import Algorithm, Network, PreviousRetargetPolicy

ENV_KEYS = (
    "RETARGET_NETWORK",
    "RETARGET_ALGORITHM",
    "RETARGET_PREVIOUS_POLICY",
    "RETARGET_PARAMS_FILE",
    "RETARGET_LOG_LEVEL",
    "RETARGET_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_defaults():
    cfg = rconfig.load()
    assert cfg.network is Network.MAINNET
    assert cfg.algorithm is Algorithm.LWMA
    assert cfg.previous_policy is PreviousRetargetPolicy.ESTIMATE
    assert cfg.params_file is None
    assert cfg.log.level == "INFO"
    assert cfg.log.json is None
    assert cfg.estimator_params() is MAINNET_PARAMS

def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("RETARGET_NETWORK", "testnet")
    monkeypatch.setenv("RETARGET_ALGORITHM", "ASERT")
    monkeypatch.setenv("RETARGET_PREVIOUS_POLICY", "passthrough")
    monkeypatch.setenv("RETARGET_LOG_LEVEL", "debug")
    monkeypatch.setenv("RETARGET_LOG_FORMAT", "json")
    cfg = rconfig.load()
    assert cfg.network is Network.TESTNET
    assert cfg.algorithm is Algorithm.ASERT
    assert cfg.previous_policy is PreviousRetargetPolicy.PASSTHROUGH
    assert cfg.log.level == "DEBUG"
    assert cfg.log.json is True
    assert cfg.estimator_params() is TESTNET_PARAMS

def test_precedence_overrides_env_file(tmp_path, monkeypatch):
    path = tmp_path / "retarget.toml"
    path.write_text(
        'network = "testnet"\nalgorithm = "trailing"\n\n[log]\nlevel = "WARNING"\nformat = "text"\n',
        encoding="utf-8",
    )
    cfg = rconfig.load(path)
    assert cfg.network is Network.TESTNET
    assert cfg.algorithm is Algorithm.TRAILING
    assert cfg.log.level == "WARNING"
    assert cfg.log.json is False

    monkeypatch.setenv("RETARGET_ALGORITHM", "lwma")
    assert rconfig.load(path).algorithm is Algorithm.LWMA

    cfg = rconfig.load(path, algorithm="asert", network=None, log={"level": "ERROR"})
    assert cfg.algorithm is Algorithm.ASERT
    assert cfg.network is Network.TESTNET
    assert cfg.log.level == "ERROR"
    assert cfg.log.format == "text"

def test_yaml_and_json_files(tmp_path):
    y = tmp_path / "c.yaml"
    y.write_text("network: test\nprevious_policy: passthrough\n", encoding="utf-8")
    assert rconfig.load(y).network is Network.TESTNET
    j = tmp_path / "c.json"
    j.write_text('{"algorithm": "exponential"}', encoding="utf-8")
    assert rconfig.load(j).algorithm is Algorithm.ASERT

def test_params_file_flows_into_estimator_params(tmp_path, monkeypatch):
    profile = tmp_path / "networks.yaml"
    profile.write_text("mainnet:\n  window_size: 30\n", encoding="utf-8")
    monkeypatch.setenv("RETARGET_PARAMS_FILE", str(profile))
    cfg = rconfig.load()
    assert cfg.params_file == profile.resolve()
    assert cfg.estimator_params().window_size == 30
    assert cfg.to_dict()["params_file"] == str(profile.resolve())

def test_unknown_choice_raises_config_error():
    with pytest.raises(ConfigError) as ei:
        rconfig.load(network="regtest")
    assert ei.value.context["value"] == "regtest"
    assert "mainnet" in ei.value.message

@pytest.mark.parametrize(
    "name,text",
    [
        ("c.ini", "network=testnet\n"),
        ("c.json", "{not json"),
        ("c.yaml", "- a\n- b\n"),
    ],
)
def test_bad_config_files(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        rconfig.load(path)

def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        rconfig.load(tmp_path / "absent.toml")

def test_bad_log_format():
    with pytest.raises(ConfigError):
        rconfig.load(log={"format": "xml"})

def test_bad_params_file_surfaces_params_error(tmp_path):
    cfg = rconfig.load(params_file=str(tmp_path / "missing.yaml"))
    with pytest.raises(ParamsError):
        cfg.estimator_params()

def test_to_dict_plain_values():
    d = rconfig.load(network="testnet").to_dict()
    assert d["network"] == "testnet"
    assert d["algorithm"] == "lwma"
    assert d["log"] == {"level": "INFO", "format": None}

@pytest.mark.parametrize("name", ["c.json", "c.toml", "c.yaml"])
def test_non_utf8_config_file(tmp_path, name):
    path = tmp_path / name
    path.write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(ConfigError):
        rconfig.load(path)
