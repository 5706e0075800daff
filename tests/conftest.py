import asyncio
import json
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from zk.zk_verifier import DEFAULT_CIRCUITS, ProofVerifier, VerificationKeyStore


def g1(x, y):
    return [str(x), str(y), "1"]


def g2(x0, x1, y0, y1):
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def make_vkey(n_public: int = 4) -> Dict:
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": n_public,
        "vk_alpha_1": g1(11, 12),
        "vk_beta_2": g2(21, 22, 23, 24),
        "vk_gamma_2": g2(31, 32, 33, 34),
        "vk_delta_2": g2(41, 42, 43, 44),
        "IC": [g1(100 + i, 200 + i) for i in range(n_public + 1)],
    }


def make_proof(tag: str = "1") -> Dict:
    return {
        "a": [tag, "2"],
        "b": [["3", "4"], ["5", "6"]],
        "c": ["7", "8"],
    }


ACCESS_SIGNALS = ["42", "9001", "1000", "777"]
COMPUTATION_SIGNALS = ["1111", "2222", "3", "4444", "5555"]


class StubPrimitive:
    """Accepts proofs whose a[0] is not "0"; optional per-proof delays"""

    def __init__(self, delays: Optional[Dict[str, float]] = None,
                 is_valid: Optional[Callable] = None, error: Optional[Exception] = None):
        self.calls: List = []
        self.completed: List[str] = []
        self.delays = delays or {}
        self.is_valid = is_valid or (lambda proof: proof.a[0] != "0")
        self.error = error

    async def __call__(self, verification_key, public_signals, proof):
        self.calls.append((verification_key, list(public_signals), proof))
        await asyncio.sleep(self.delays.get(proof.a[0], 0))
        if self.error is not None:
            raise self.error
        self.completed.append(proof.a[0])
        return self.is_valid(proof)

    @property
    def call_count(self) -> int:
        return len(self.calls)


class CountingStorage:
    """In-memory key storage that counts reads"""

    def __init__(self, files: Optional[Dict[str, bytes]] = None, delay: float = 0.0):
        self.files = dict(files or {})
        self.delay = delay
        self.reads: List[Path] = []

    async def read_bytes(self, path: Path) -> bytes:
        self.reads.append(Path(path))
        await asyncio.sleep(self.delay)
        try:
            return self.files[Path(path).name]
        except KeyError:
            raise FileNotFoundError(str(path))

    def put(self, circuit: str, data) -> None:
        if not isinstance(data, bytes):
            data = json.dumps(data).encode()
        self.files[f"{circuit}.vkey.json"] = data


class StubChainClient:
    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.calls: List = []
        self.result = result
        self.error = error

    async def call_verify(self, address, a, b, c, public_signals):
        self.calls.append((address, a, b, c, public_signals))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def storage():
    store = CountingStorage()
    for name in DEFAULT_CIRCUITS:
        store.put(name, make_vkey())
    return store


@pytest.fixture
def primitive():
    return StubPrimitive()


@pytest.fixture
def key_store(storage):
    return VerificationKeyStore("circuits", DEFAULT_CIRCUITS, storage=storage)


@pytest.fixture
def verifier(storage, primitive):
    return ProofVerifier("circuits", DEFAULT_CIRCUITS, primitive=primitive, storage=storage)


@pytest.fixture
def vkey_dir(tmp_path):
    circuits_dir = tmp_path / "circuits"
    circuits_dir.mkdir()
    for name in DEFAULT_CIRCUITS:
        (circuits_dir / f"{name}.vkey.json").write_text(json.dumps(make_vkey()))
    return circuits_dir
