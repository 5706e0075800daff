import json
import logging
import sys

import pytest
import yaml

import main
from conftest import make_proof

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as snarkjs")

FAKE_SNARKJS = """#!/bin/sh
echo "[INFO]  snarkJS: OK!"
exit 0
"""


@pytest.fixture
def workspace(tmp_path, vkey_dir, monkeypatch):
    for name in ("ACCESS_VERIFIER_ADDRESS", "COMPUTATION_VERIFIER_ADDRESS", "OWNERSHIP_VERIFIER_ADDRESS"):
        monkeypatch.delenv(name, raising=False)

    snarkjs = tmp_path / "snarkjs"
    snarkjs.write_text(FAKE_SNARKJS)
    snarkjs.chmod(0o755)

    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        'circuits_dir': str(vkey_dir),
        'snarkjs_bin': str(snarkjs),
        'log_dir': str(tmp_path / "logs"),
    }))
    (tmp_path / "proof.json").write_text(json.dumps(make_proof()))
    (tmp_path / "public.json").write_text(json.dumps(["42", "9001", "1000", "777"]))

    yield tmp_path

    root = logging.getLogger()
    for handler in root.handlers[:]:
        if type(handler) in (logging.FileHandler, logging.StreamHandler):
            handler.close()
            root.removeHandler(handler)


def test_verify_command(workspace):
    report = workspace / "report.json"
    code = main.main([
        "--config", str(workspace / "config.yaml"),
        "verify", "access", str(workspace / "proof.json"), str(workspace / "public.json"),
        "--report", str(report),
    ])

    assert code == 0
    data = json.loads(report.read_text())['data']
    assert data['accepted'] is True
    assert data['backend'] == "off_chain"
    assert data['statistics']['successes'] == 1


def test_verify_command_rejects_expired_access(workspace):
    policy = workspace / "policy.json"
    policy.write_text(json.dumps({'currentTime': 5000}))

    code = main.main([
        "--config", str(workspace / "config.yaml"),
        "verify", "access", str(workspace / "proof.json"), str(workspace / "public.json"),
        "--policy", str(policy),
    ])
    assert code == 1


def test_export_command(workspace, capsys):
    output = workspace / "contracts" / "OwnershipVerifier.sol"
    code = main.main([
        "--config", str(workspace / "config.yaml"),
        "export-verifier", "ownership", "--output", str(output),
    ])

    assert code == 0
    assert "contract OwnershipVerifier" in output.read_text()
    assert str(output) in capsys.readouterr().out


def test_export_unknown_circuit(workspace):
    code = main.main(["--config", str(workspace / "config.yaml"), "export-verifier", "voting"])
    assert code == 1


def test_info_command(workspace, capsys):
    code = main.main(["--config", str(workspace / "config.yaml"), "info"])

    assert code == 0
    info = json.loads(capsys.readouterr().out)
    assert set(info['circuits']) == {"access", "computation", "ownership"}
    assert len(info['circuits']['access']['key_sha256']) == 64
    assert 'cpu_count_logical' in info['system_info']
