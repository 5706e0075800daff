from pathlib import Path

import pytest

from config.config import VerifierConfig, contract_addresses_from_env, load_config, save_config
from zk.zk_verifier import CircuitConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ACCESS_VERIFIER_ADDRESS", "COMPUTATION_VERIFIER_ADDRESS",
                 "OWNERSHIP_VERIFIER_ADDRESS", "ZK_RPC_URL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "missing.yaml")

    assert config.circuits_dir == Path("circuits")
    assert config.enable_caching is True
    assert config.circuit_config['computation'].max_constraints == 200000
    assert config.contract_addresses == {}


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "circuits_dir: /srv/keys\n"
        "enable_caching: false\n"
        "snarkjs_bin: /opt/snarkjs\n"
        "circuits:\n"
        "  access:\n"
        "    description: Access\n"
        "    maxConstraints: 1234\n"
        "contract_addresses:\n"
        "  access: '0x1111111111111111111111111111111111111111'\n"
    )

    config = load_config(path)

    assert config.circuits_dir == Path("/srv/keys")
    assert config.enable_caching is False
    assert config.snarkjs_bin == "/opt/snarkjs"
    assert config.circuit_config == {'access': CircuitConfig("Access", 1234)}
    assert config.contract_addresses['access'].startswith("0x1111")


def test_save_and_reload(tmp_path):
    path = tmp_path / "config.yaml"
    config = VerifierConfig(circuits_dir=tmp_path / "keys", enable_debug_mode=True,
                            contract_addresses={'ownership': "0xabc"})
    save_config(config, path)

    loaded = load_config(path)
    assert loaded.circuits_dir == tmp_path / "keys"
    assert loaded.enable_debug_mode is True
    assert loaded.contract_addresses == {'ownership': "0xabc"}
    assert loaded.circuit_config == config.circuit_config


def test_invalid_yaml_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("circuits: [unclosed\n")
    assert load_config(path) == VerifierConfig()


def test_environment_addresses(monkeypatch, tmp_path):
    monkeypatch.setenv("ACCESS_VERIFIER_ADDRESS", "0xenv-access")
    monkeypatch.setenv("OWNERSHIP_VERIFIER_ADDRESS", "0xenv-ownership")

    assert contract_addresses_from_env() == {
        'access': "0xenv-access",
        'ownership': "0xenv-ownership",
    }

    path = tmp_path / "config.yaml"
    path.write_text("contract_addresses:\n  access: '0xfile-access'\n")
    config = load_config(path)
    assert config.contract_addresses == {
        'access': "0xfile-access",
        'ownership': "0xenv-ownership",
    }


def test_rpc_url_from_environment(monkeypatch):
    monkeypatch.setenv("ZK_RPC_URL", "http://rpc.test:8545")
    assert VerifierConfig().rpc_url == "http://rpc.test:8545"


def test_caller_addresses_are_not_mutated(monkeypatch):
    monkeypatch.setenv("COMPUTATION_VERIFIER_ADDRESS", "0xenv-computation")
    addresses = {'access': "0xcaller-access"}

    config = VerifierConfig(contract_addresses=addresses)

    assert addresses == {'access': "0xcaller-access"}
    assert config.contract_addresses == {
        'access': "0xcaller-access",
        'computation': "0xenv-computation",
    }
