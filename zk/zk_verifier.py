"""
Zero-Knowledge Proof Verification Gate
Verification-key lifecycle, public-signal policy checks and off-chain/on-chain
dispatch for Groth16 proofs guarding data access, computation and ownership
"""

import asyncio
import json
import hashlib
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
from cryptography.hazmat.primitives import constant_time

from .solidity import render_groth16_verifier

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS
# ============================================================================


class ZKVerifierError(Exception):
    """Base exception for verification operations"""
    pass


class UnknownCircuitError(ZKVerifierError):
    """Circuit type is not configured"""
    pass


class InvalidProofShapeError(ZKVerifierError):
    """Proof does not have the a[2], b[2][2], c[2] shape"""
    pass


class InsufficientSignalsError(ZKVerifierError):
    """Too few public signals for the circuit"""
    pass


class KeyLoadError(ZKVerifierError):
    """Verification key could not be read or parsed"""
    pass


class ExportError(ZKVerifierError):
    """Verifier source could not be produced"""
    pass


class BackendUnavailableError(ZKVerifierError):
    """On-chain verification requested without a client or contract address"""
    pass


class CryptoBackendFailure(ZKVerifierError):
    """The off-chain cryptographic primitive could not run"""
    pass


class ChainCallFailure(ZKVerifierError):
    """The verifier contract call failed"""
    pass


# ============================================================================
# DATA MODEL
# ============================================================================


class CircuitType(Enum):
    """Circuits gated by this verifier"""
    ACCESS = "access"
    COMPUTATION = "computation"
    OWNERSHIP = "ownership"


class BackendKind(Enum):
    """Where the cryptographic check runs"""
    OFF_CHAIN = "off_chain"
    ON_CHAIN = "on_chain"


class FailureKind(Enum):
    """Reason a verification was not accepted"""
    UNKNOWN_CIRCUIT = "unknown_circuit"
    INVALID_PROOF_SHAPE = "invalid_proof_shape"
    INVALID_SIGNALS = "invalid_signals"
    INSUFFICIENT_SIGNALS = "insufficient_signals"
    POLICY_REJECTED = "policy_rejected"
    KEY_LOAD_FAILED = "key_load_failed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    CRYPTO_REJECTED = "crypto_rejected"
    BACKEND_ERROR = "backend_error"
    INVALID_OPTIONS = "invalid_options"


@dataclass
class CircuitConfig:
    """Configuration for a specific circuit (informational only)"""
    description: str = ""
    max_constraints: int = 0

    @classmethod
    def coerce(cls, value: Union['CircuitConfig', Mapping[str, Any]]) -> 'CircuitConfig':
        if isinstance(value, cls):
            return value
        return cls(
            description=value.get('description', ''),
            max_constraints=int(value.get('max_constraints', value.get('maxConstraints', 0)))
        )


DEFAULT_CIRCUITS: Dict[str, CircuitConfig] = {
    CircuitType.ACCESS.value: CircuitConfig("Access control circuit", 50000),
    CircuitType.COMPUTATION.value: CircuitConfig("Computation verification circuit", 200000),
    CircuitType.OWNERSHIP.value: CircuitConfig("Data ownership circuit", 30000),
}


def circuit_name(circuit_type: Union[CircuitType, str]) -> str:
    """Normalize a circuit identifier to its configuration key"""
    if isinstance(circuit_type, CircuitType):
        return circuit_type.value
    return str(circuit_type)


def _element(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidProofShapeError(f"Field element must be a string or int, got {type(value).__name__}")
    return str(value)


def _pair(value: Any, label: str) -> List[str]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise InvalidProofShapeError(f"{label} must have exactly 2 elements")
    return [_element(v) for v in value]


@dataclass(frozen=True)
class Proof:
    """Groth16 proof in affine form: a (G1), b (G2), c (G1)"""
    a: List[str]
    b: List[List[str]]
    c: List[str]

    def __post_init__(self):
        object.__setattr__(self, 'a', _pair(self.a, 'a'))
        if not isinstance(self.b, (list, tuple)) or len(self.b) != 2:
            raise InvalidProofShapeError("b must have exactly 2 rows")
        object.__setattr__(self, 'b', [_pair(row, 'b row') for row in self.b])
        object.__setattr__(self, 'c', _pair(self.c, 'c'))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Proof':
        """Build from {a, b, c} or snarkjs {pi_a, pi_b, pi_c} JSON

        Only the pi_* form may carry the trailing projective coordinate
        ("1" for G1, ["1", "0"] for G2); it is dropped before the strict
        two-element shape check. a, b and c must already be affine.
        """
        if not isinstance(data, Mapping):
            raise InvalidProofShapeError("Proof must be a mapping")

        if 'pi_a' in data or 'pi_b' in data or 'pi_c' in data:
            # snarkjs appends the projective z coordinate
            a = _strip_projective(data.get('pi_a'), '1')
            b = _strip_projective(data.get('pi_b'), ['1', '0'])
            c = _strip_projective(data.get('pi_c'), '1')
        else:
            a, b, c = data.get('a'), data.get('b'), data.get('c')

        if a is None or b is None or c is None:
            raise InvalidProofShapeError("Proof is missing a, b or c")
        return cls(a=a, b=b, c=c)

    @classmethod
    def coerce(cls, value: Any) -> 'Proof':
        if isinstance(value, cls):
            return value
        return cls.from_dict(value)

    def to_snarkjs(self) -> Dict[str, Any]:
        """snarkjs proof.json representation"""
        return {
            'pi_a': [self.a[0], self.a[1], '1'],
            'pi_b': [list(self.b[0]), list(self.b[1]), ['1', '0']],
            'pi_c': [self.c[0], self.c[1], '1'],
            'protocol': 'groth16',
            'curve': 'bn128',
        }

    def to_solidity_calldata(self):
        """Arguments for verifyProof(uint[2], uint[2][2], uint[2], uint[])

        The verifier contract expects each G2 coordinate as (imaginary, real),
        so every row of b is swapped relative to the snarkjs ordering.
        """
        a = [int(self.a[0]), int(self.a[1])]
        b = [
            [int(self.b[0][1]), int(self.b[0][0])],
            [int(self.b[1][1]), int(self.b[1][0])],
        ]
        c = [int(self.c[0]), int(self.c[1])]
        return a, b, c


def _strip_projective(value: Any, z: Any) -> Any:
    if isinstance(value, (list, tuple)) and len(value) == 3 and _normalize_trailer(value[2]) == z:
        return list(value[:2])
    return value


def _normalize_trailer(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return str(value)


def is_valid_proof_structure(proof: Any) -> bool:
    """True if the proof has the a[2], b[2][2], c[2] shape"""
    try:
        Proof.coerce(proof)
        return True
    except InvalidProofShapeError:
        return False


def is_signal_sequence(public_signals: Any) -> bool:
    return isinstance(public_signals, (list, tuple))


@dataclass
class ProofEntry:
    """One proof in a batch or multi-circuit request"""
    proof: Any
    public_signals: Any
    circuit_type: Optional[Union[CircuitType, str]] = None

    @classmethod
    def coerce(cls, value: Any) -> 'ProofEntry':
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                proof=value.get('proof'),
                public_signals=value.get('public_signals', value.get('publicSignals')),
                circuit_type=value.get('circuit_type', value.get('circuitType'))
            )
        return cls(proof=None, public_signals=None)


@dataclass
class PolicyMetadata:
    """Caller-supplied constraints on public signals; None means no constraint"""
    check_expiration: bool = True
    current_time: Optional[float] = None
    expected_merkle_root: Optional[str] = None
    allowed_computation_types: Optional[Sequence[int]] = None
    expected_privacy_budget_hash: Optional[str] = None
    expected_validators_merkle_root: Optional[str] = None
    expected_result_hash: Optional[str] = None

    # Identifiers used only in log lines
    access_id: Optional[str] = None
    computation_id: Optional[str] = None
    data_vault_id: Optional[str] = None

    _ALIASES = {
        'checkExpiration': 'check_expiration',
        'currentTime': 'current_time',
        'expectedMerkleRoot': 'expected_merkle_root',
        'allowedComputationTypes': 'allowed_computation_types',
        'expectedPrivacyBudgetHash': 'expected_privacy_budget_hash',
        'expectedValidatorsMerkleRoot': 'expected_validators_merkle_root',
        'expectedResultHash': 'expected_result_hash',
        'accessId': 'access_id',
        'computationId': 'computation_id',
        'dataVaultId': 'data_vault_id',
    }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'PolicyMetadata':
        """Accepts camelCase or snake_case keys, ignores unknown ones"""
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"Policy metadata must be a mapping, got {type(data).__name__}")
        known = set(cls.__dataclass_fields__)
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        if kwargs.get('check_expiration') is None:
            kwargs.pop('check_expiration', None)
        return cls(**kwargs)

    @classmethod
    def coerce(cls, value: Any) -> 'PolicyMetadata':
        if isinstance(value, cls):
            return value
        return cls.from_dict(value)


@dataclass
class PolicyDecision:
    accepted: bool
    reason: Optional[str] = None


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _flag(value: Any, name: str) -> bool:
    """Parse a boolean option, accepting "true"/"false" style strings"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class VerifyOptions:
    """Per-call verification options"""
    use_cache: bool = True
    backend: BackendKind = BackendKind.OFF_CHAIN
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'VerifyOptions':
        if not data:
            return cls()
        backend = data.get('backend', BackendKind.OFF_CHAIN)
        if not isinstance(backend, BackendKind):
            backend = BackendKind(backend)
        if _flag(data.get('on_chain', data.get('onChain', False)), 'on_chain'):
            backend = BackendKind.ON_CHAIN
        return cls(
            use_cache=_flag(data.get('use_cache', data.get('useCache', True)), 'use_cache'),
            backend=backend,
            verbose=_flag(data.get('verbose', False), 'verbose')
        )

    @classmethod
    def coerce(cls, value: Any) -> 'VerifyOptions':
        if isinstance(value, cls):
            return value
        if value is not None and not isinstance(value, Mapping):
            raise TypeError(f"Verify options must be a mapping, got {type(value).__name__}")
        return cls.from_dict(value)


@dataclass
class VerificationOutcome:
    """Structured result behind the boolean verify contract"""
    accepted: bool
    elapsed_ms: float
    failure_kind: Optional[FailureKind] = None
    reason: Optional[str] = None


VerificationKey = Mapping[str, Any]

# ============================================================================
# VERIFICATION KEY STORE
# ============================================================================


class FileKeyStorage:
    """Reads key files from disk without blocking the event loop"""

    async def read_bytes(self, path: Path) -> bytes:
        return await asyncio.to_thread(Path(path).read_bytes)


class VerificationKeyStore:
    """Loads, caches and exports per-circuit verification keys.

    Concurrent loads of the same circuit share a single storage read: the
    first caller starts a load task in ``_inflight`` and every caller,
    the first included, awaits it through ``asyncio.shield``. Cancelling one
    caller never cancels the shared load. Failed loads are never cached.
    """

    def __init__(self, circuits_dir: Union[str, Path], circuit_config: Mapping[str, Any],
                 enable_caching: bool = True, storage=None):
        self.circuits_dir = Path(circuits_dir)
        self.circuit_config: Dict[str, CircuitConfig] = {
            circuit_name(name): CircuitConfig.coerce(cfg) for name, cfg in circuit_config.items()
        }
        self.enable_caching = enable_caching
        self.storage = storage or FileKeyStorage()
        self._cache: Dict[str, VerificationKey] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def is_configured(self, circuit_type: Union[CircuitType, str]) -> bool:
        return circuit_name(circuit_type) in self.circuit_config

    def key_path(self, circuit_type: Union[CircuitType, str]) -> Path:
        return self.circuits_dir / f"{circuit_name(circuit_type)}.vkey.json"

    def is_cached(self, circuit_type: Union[CircuitType, str]) -> bool:
        return circuit_name(circuit_type) in self._cache

    async def get(self, circuit_type: Union[CircuitType, str], use_cache: bool = True) -> VerificationKey:
        """Return the verification key, loading it from storage if needed"""
        name = circuit_name(circuit_type)
        if name not in self.circuit_config:
            raise UnknownCircuitError(f"Unsupported circuit type: {name}")

        if use_cache and self.enable_caching and name in self._cache:
            return self._cache[name]

        pending = self._inflight.get(name)
        if pending is None:
            # Detached from any caller: a cancelled caller leaves the load running for the rest
            pending = asyncio.ensure_future(self._load_and_store(name))
            pending.add_done_callback(lambda task: self._settle(name, task))
            self._inflight[name] = pending
        return await asyncio.shield(pending)

    async def _load_and_store(self, name: str) -> VerificationKey:
        key = await self._load(name)
        if self.enable_caching:
            self._cache[name] = key
        return key

    def _settle(self, name: str, task: asyncio.Future) -> None:
        if self._inflight.get(name) is task:
            del self._inflight[name]
        # Mark a failed load as retrieved even when every caller has gone
        if not task.cancelled():
            task.exception()

    async def _load(self, name: str) -> VerificationKey:
        path = self.key_path(name)
        try:
            raw = await self.storage.read_bytes(path)
        except Exception as e:
            logger.error(f"Failed to load verification key for '{name}': {e}")
            raise KeyLoadError(f"Cannot read verification key {path}: {e}") from e

        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Verification key for '{name}' is not valid JSON: {e}")
            raise KeyLoadError(f"Cannot parse verification key {path}: {e}") from e

        if not isinstance(data, dict):
            raise KeyLoadError(f"Verification key {path} must be a JSON object")

        logger.info(f"Loaded verification key for '{name}' from {path}")
        return MappingProxyType(data)

    def invalidate(self, circuit_type: Union[CircuitType, str]) -> bool:
        """Drop a cached key so the next access reloads it (key rotation)"""
        name = circuit_name(circuit_type)
        removed = self._cache.pop(name, None) is not None
        if removed:
            logger.info(f"Invalidated cached verification key for '{name}'")
        return removed

    def invalidate_all(self) -> None:
        self._cache.clear()
        logger.info("Invalidated all cached verification keys")

    async def fingerprint(self, circuit_type: Union[CircuitType, str]) -> str:
        """SHA-256 of the canonical JSON of the key"""
        key = await self.get(circuit_type)
        canonical = json.dumps(dict(key), sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(canonical.encode()).hexdigest()

    async def export_verifier_source(self, circuit_type: Union[CircuitType, str],
                                     output_path: Optional[Union[str, Path]] = None) -> str:
        """Render Solidity verifier source for the circuit's key"""
        name = circuit_name(circuit_type)
        try:
            key = await self.get(name)
        except ZKVerifierError as e:
            raise ExportError(f"Cannot export verifier for '{name}': {e}") from e

        try:
            source = render_groth16_verifier(dict(key), contract_name=_contract_name(name), circuit=name)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ExportError(f"Verification key for '{name}' cannot be exported: {e}") from e

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(source)
            logger.info(f"Wrote {name} verifier to {output_path}")
        return source


def _contract_name(name: str) -> str:
    return ''.join(part.capitalize() for part in name.replace('-', '_').split('_')) + 'Verifier'

# ============================================================================
# PUBLIC SIGNAL POLICY
# ============================================================================


SIGNAL_LAYOUTS: Dict[str, List[str]] = {
    CircuitType.ACCESS.value: ['dataVaultId', 'accessHash', 'timestamp', 'merkleRoot'],
    CircuitType.COMPUTATION.value: [
        'computationHash', 'resultHash', 'computationType', 'privacyBudgetHash', 'validatorsMerkleRoot'
    ],
    CircuitType.OWNERSHIP.value: [],
}


def _same(expected: str, actual: str) -> bool:
    return constant_time.bytes_eq(str(expected).encode(), str(actual).encode())


class SignalPolicyExtractor:
    """Names public signals by position and checks them against caller policy"""

    def __init__(self, layouts: Optional[Mapping[str, List[str]]] = None):
        self.layouts = dict(layouts or SIGNAL_LAYOUTS)

    def required_signals(self, circuit_type: Union[CircuitType, str]) -> int:
        return len(self.layouts.get(circuit_name(circuit_type), []))

    def extract(self, circuit_type: Union[CircuitType, str], public_signals: Sequence[str]) -> Dict[str, str]:
        name = circuit_name(circuit_type)
        layout = self.layouts.get(name, [])
        if len(public_signals) < len(layout):
            raise InsufficientSignalsError(
                f"Insufficient {name} public signals: need {len(layout)}, got {len(public_signals)}")
        return {field_name: public_signals[i] for i, field_name in enumerate(layout)}

    def validate(self, circuit_type: Union[CircuitType, str], signals: Mapping[str, str],
                 policy: PolicyMetadata, now: Optional[float] = None) -> PolicyDecision:
        """Apply policy rules in order; the first failure rejects"""
        name = circuit_name(circuit_type)
        if name == CircuitType.ACCESS.value:
            return self._validate_access(signals, policy, now)
        if name == CircuitType.COMPUTATION.value:
            return self._validate_computation(signals, policy)
        return PolicyDecision(True)

    def _validate_access(self, signals, policy: PolicyMetadata, now: Optional[float]) -> PolicyDecision:
        # The in-proof timestamp is an expiry bound: a later "now" has expired
        if policy.check_expiration is not False and now is not None:
            try:
                expires = int(signals['timestamp'])
                now = float(now)
            except (TypeError, ValueError):
                return PolicyDecision(False, f"Malformed access timestamp: {signals['timestamp']!r} vs {now!r}")
            if now > expires:
                return PolicyDecision(False, f"Access expired: {expires} < {now}")

        if policy.expected_merkle_root and not _same(policy.expected_merkle_root, signals['merkleRoot']):
            return PolicyDecision(
                False,
                f"Merkle root mismatch: expected {policy.expected_merkle_root}, got {signals['merkleRoot']}")
        return PolicyDecision(True)

    def _validate_computation(self, signals, policy: PolicyMetadata) -> PolicyDecision:
        if policy.allowed_computation_types is not None:
            try:
                computation_type = int(signals['computationType'])
                allowed = {int(t) for t in policy.allowed_computation_types}
            except (TypeError, ValueError):
                return PolicyDecision(False, f"Malformed computation type: {signals['computationType']!r}")
            if computation_type not in allowed:
                return PolicyDecision(False, f"Invalid computation type: {signals['computationType']}")

        checks = [
            (policy.expected_privacy_budget_hash, 'privacyBudgetHash', 'Privacy budget'),
            (policy.expected_validators_merkle_root, 'validatorsMerkleRoot', 'Validators root'),
            (policy.expected_result_hash, 'resultHash', 'Result hash'),
        ]
        for expected, key, label in checks:
            if expected and not _same(expected, signals[key]):
                return PolicyDecision(False, f"{label} mismatch: expected {expected}, got {signals[key]}")
        return PolicyDecision(True)

# ============================================================================
# CRYPTOGRAPHIC BACKENDS
# ============================================================================


Primitive = Callable[[VerificationKey, List[str], Proof], Awaitable[bool]]


class CryptoVerificationBackend(ABC):
    """Accept/reject cryptographic check for a single proof"""

    kind: BackendKind

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def verify(self, circuit_type: str, proof: Proof, public_signals: List[str],
                     use_cache: bool = True) -> bool:
        ...


class OffChainBackend(CryptoVerificationBackend):
    """Local verification through an external primitive (snarkjs by default)"""

    kind = BackendKind.OFF_CHAIN

    def __init__(self, key_store: VerificationKeyStore, primitive: Primitive):
        self.key_store = key_store
        self.primitive = primitive

    async def verify(self, circuit_type, proof, public_signals, use_cache=True) -> bool:
        # Key load errors propagate; they are configuration problems
        verification_key = await self.key_store.get(circuit_type, use_cache)
        try:
            return bool(await self.primitive(verification_key, public_signals, proof))
        except Exception as e:
            logger.warning(f"Off-chain verification failed: {e}")
            return False


class OnChainBackend(CryptoVerificationBackend):
    """Read-only call to a deployed verifier contract"""

    kind = BackendKind.ON_CHAIN

    def __init__(self, chain_client=None, contract_addresses: Optional[Mapping[str, str]] = None):
        self.chain_client = chain_client
        self.contract_addresses = {
            circuit_name(k): v for k, v in (contract_addresses or {}).items() if v
        }

    @property
    def available(self) -> bool:
        return self.chain_client is not None

    async def verify(self, circuit_type, proof, public_signals, use_cache=True) -> bool:
        if self.chain_client is None:
            raise BackendUnavailableError("No chain client for on-chain verification")
        address = self.contract_addresses.get(circuit_type)
        if not address:
            raise BackendUnavailableError(f"No contract address for '{circuit_type}'")

        try:
            a, b, c = proof.to_solidity_calldata()
            signals = [int(s) for s in public_signals]
            return bool(await self.chain_client.call_verify(address, a, b, c, signals))
        except Exception as e:
            logger.warning(f"On-chain verification failed: {e}")
            return False

# ============================================================================
# STATISTICS
# ============================================================================


class StatisticsTracker:
    """Process-lifetime verification counters"""

    def __init__(self):
        self.total = 0
        self.successes = 0
        self.failures = 0
        self.times_ms: List[float] = []

    def record(self, accepted: bool, elapsed_ms: float) -> None:
        self.total += 1
        if accepted:
            self.successes += 1
        else:
            self.failures += 1
        self.times_ms.append(elapsed_ms)

    def record_rejection(self) -> None:
        """Input rejected before dispatch: counted as a failure, not timed"""
        self.total += 1
        self.failures += 1

    def snapshot(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'successes': self.successes,
            'failures': self.failures,
            'success_rate_percent': round(self.successes / self.total * 100, 2) if self.total else 0.0,
            'average_ms': round(float(np.mean(self.times_ms)), 2) if self.times_ms else 0.0,
        }

    def reset(self) -> None:
        self.total = 0
        self.successes = 0
        self.failures = 0
        self.times_ms = []

# ============================================================================
# PROOF VERIFIER
# ============================================================================


class ProofVerifier:
    """Orchestrates shape checks, policy checks, backend dispatch and statistics.

    Every ``verify*`` entry point returns a bool and never raises; the
    ``*_detailed`` variants return a :class:`VerificationOutcome` carrying the
    failure kind.
    """

    def __init__(self, circuits_dir: Union[str, Path], circuit_config: Optional[Mapping[str, Any]] = None,
                 enable_caching: bool = True, contract_addresses: Optional[Mapping[str, str]] = None,
                 chain_client=None, primitive: Optional[Primitive] = None, storage=None):
        if primitive is None:
            from .snarkjs import SnarkjsPrimitive
            primitive = SnarkjsPrimitive()

        self.key_store = VerificationKeyStore(
            circuits_dir, circuit_config if circuit_config is not None else DEFAULT_CIRCUITS,
            enable_caching=enable_caching, storage=storage)
        self.extractor = SignalPolicyExtractor()
        self.statistics = StatisticsTracker()
        self.chain_client = chain_client
        self._backends: Dict[BackendKind, CryptoVerificationBackend] = {}
        self.register_backend(OffChainBackend(self.key_store, primitive))
        self.register_backend(OnChainBackend(chain_client, contract_addresses))

        logger.info(
            f"ZKP Verifier initialized: circuits_dir={self.key_store.circuits_dir}, "
            f"caching={enable_caching}, chain_client={chain_client is not None}")

    @classmethod
    def from_config(cls, config, chain_client=None, primitive: Optional[Primitive] = None,
                    storage=None) -> 'ProofVerifier':
        """Build from a config.VerifierConfig"""
        if primitive is None:
            from .snarkjs import SnarkjsPrimitive
            primitive = SnarkjsPrimitive(snarkjs_bin=config.snarkjs_bin)
        return cls(
            circuits_dir=config.circuits_dir,
            circuit_config=config.circuit_config,
            enable_caching=config.enable_caching,
            contract_addresses=config.contract_addresses,
            chain_client=chain_client,
            primitive=primitive,
            storage=storage,
        )

    @property
    def circuit_config(self) -> Dict[str, CircuitConfig]:
        return self.key_store.circuit_config

    def register_backend(self, backend: CryptoVerificationBackend) -> None:
        self._backends[backend.kind] = backend

    def _select_backend(self, options: VerifyOptions) -> CryptoVerificationBackend:
        backend = self._backends.get(options.backend)
        if backend is None or not backend.available:
            return self._backends[BackendKind.OFF_CHAIN]
        return backend

    def _reject(self, start: float, kind: FailureKind, reason: str) -> VerificationOutcome:
        self.statistics.record_rejection()
        logger.error(reason)
        return VerificationOutcome(False, (time.perf_counter() - start) * 1000, kind, reason)

    async def verify_detailed(self, circuit_type: Union[CircuitType, str], proof: Any,
                              public_signals: Any, options: Any = None) -> VerificationOutcome:
        start = time.perf_counter()
        name = circuit_name(circuit_type)

        try:
            options = VerifyOptions.coerce(options)
        except (TypeError, ValueError) as e:
            return self._reject(start, FailureKind.INVALID_OPTIONS, f"Invalid verify options: {e}")

        if name not in self.circuit_config:
            return self._reject(start, FailureKind.UNKNOWN_CIRCUIT, f"Unsupported circuit type: {name}")
        try:
            proof = Proof.coerce(proof)
        except InvalidProofShapeError as e:
            return self._reject(start, FailureKind.INVALID_PROOF_SHAPE, f"Invalid proof structure: {e}")
        if not is_signal_sequence(public_signals):
            return self._reject(start, FailureKind.INVALID_SIGNALS, "publicSignals must be a list")

        logger.info(f"Verifying proof for circuit '{name}'")
        if options.verbose:
            logger.debug(f"Proof: {proof}")
            logger.debug(f"Public signals: {public_signals}")

        failure_kind = None
        reason = None
        try:
            backend = self._select_backend(options)
            accepted = await backend.verify(name, proof, list(public_signals), options.use_cache)
            if not accepted:
                failure_kind = FailureKind.CRYPTO_REJECTED
        except KeyLoadError as e:
            accepted, failure_kind, reason = False, FailureKind.KEY_LOAD_FAILED, str(e)
        except BackendUnavailableError as e:
            accepted, failure_kind, reason = False, FailureKind.BACKEND_UNAVAILABLE, str(e)
        except Exception as e:
            accepted, failure_kind, reason = False, FailureKind.BACKEND_ERROR, str(e)

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.statistics.record(accepted, elapsed_ms)

        if reason:
            logger.error(f"Failed to verify proof for '{name}': {reason}")
        logger.info(f"Proof verification for '{name}' result: {accepted} ({elapsed_ms:.0f}ms)")
        return VerificationOutcome(accepted, elapsed_ms, failure_kind, reason)

    async def verify(self, circuit_type: Union[CircuitType, str], proof: Any,
                     public_signals: Any, options: Any = None) -> bool:
        """Verify a single proof; never raises"""
        outcome = await self.verify_detailed(circuit_type, proof, public_signals, options)
        return outcome.accepted

    async def verify_batch(self, circuit_type: Union[CircuitType, str], proof_entries: Sequence[Any],
                           options: Any = None) -> List[bool]:
        """Verify proofs for one circuit concurrently; results keep input order"""
        logger.info(f"Verifying batch of {len(proof_entries)} proofs for '{circuit_name(circuit_type)}'")
        entries = [ProofEntry.coerce(e) for e in proof_entries]
        tasks = [self.verify(circuit_type, e.proof, e.public_signals, options) for e in entries]
        return list(await asyncio.gather(*tasks))

    async def verify_multi(self, proof_entries: Sequence[Any], options: Any = None) -> bool:
        """Verify every component, then require all of them to pass"""
        logger.info(f"Verifying multi-circuit proof with {len(proof_entries)} components")
        entries = [ProofEntry.coerce(e) for e in proof_entries]
        tasks = [
            self.verify(e.circuit_type if e.circuit_type is not None else '', e.proof, e.public_signals, options)
            for e in entries
        ]
        results = await asyncio.gather(*tasks)
        return all(results)

    async def verify_with_policy_detailed(self, kind: Union[CircuitType, str], proof: Any,
                                          public_signals: Any, policy: Any = None,
                                          options: Any = None) -> VerificationOutcome:
        start = time.perf_counter()
        name = circuit_name(kind)
        try:
            policy = PolicyMetadata.coerce(policy)
        except TypeError as e:
            return self._reject(start, FailureKind.POLICY_REJECTED, f"Invalid policy metadata: {e}")

        label = {
            CircuitType.ACCESS.value: policy.access_id,
            CircuitType.COMPUTATION.value: policy.computation_id,
            CircuitType.OWNERSHIP.value: policy.data_vault_id,
        }.get(name)
        logger.info(f"Verifying {name} proof{f' for ID {label}' if label else ''}")

        if name not in self.circuit_config:
            return self._reject(start, FailureKind.UNKNOWN_CIRCUIT, f"Unsupported circuit type: {name}")
        if not is_signal_sequence(public_signals):
            return self._reject(start, FailureKind.INVALID_SIGNALS, "publicSignals must be a list")

        try:
            signals = self.extractor.extract(name, public_signals)
        except InsufficientSignalsError as e:
            return self._reject(start, FailureKind.INSUFFICIENT_SIGNALS, str(e))

        decision = self.extractor.validate(name, signals, policy, now=policy.current_time)
        if not decision.accepted:
            self.statistics.record_rejection()
            logger.warning(decision.reason)
            return VerificationOutcome(
                False, (time.perf_counter() - start) * 1000, FailureKind.POLICY_REJECTED, decision.reason)

        return await self.verify_detailed(name, proof, public_signals, options)

    async def verify_with_policy(self, kind: Union[CircuitType, str], proof: Any, public_signals: Any,
                                 policy: Any = None, options: Any = None) -> bool:
        outcome = await self.verify_with_policy_detailed(kind, proof, public_signals, policy, options)
        return outcome.accepted

    async def verify_access_proof(self, proof: Any, public_signals: Any, policy: Any = None,
                                  options: Any = None) -> bool:
        return await self.verify_with_policy(CircuitType.ACCESS, proof, public_signals, policy, options)

    async def verify_computation_proof(self, proof: Any, public_signals: Any, policy: Any = None,
                                       options: Any = None) -> bool:
        return await self.verify_with_policy(CircuitType.COMPUTATION, proof, public_signals, policy, options)

    async def verify_ownership_proof(self, proof: Any, public_signals: Any, policy: Any = None,
                                     options: Any = None) -> bool:
        return await self.verify_with_policy(CircuitType.OWNERSHIP, proof, public_signals, policy, options)

    def record_timeout(self, elapsed_ms: Optional[float] = None) -> None:
        """Count a verification abandoned by a caller-side timeout"""
        if elapsed_ms is None:
            self.statistics.record_rejection()
        else:
            self.statistics.record(False, elapsed_ms)
        logger.warning("Proof verification timed out")

    async def export_verifier_source(self, circuit_type: Union[CircuitType, str],
                                     output_path: Optional[Union[str, Path]] = None) -> str:
        return await self.key_store.export_verifier_source(circuit_type, output_path)

    def get_statistics(self) -> Dict[str, Any]:
        return self.statistics.snapshot()

    def reset_statistics(self) -> None:
        self.statistics.reset()
        logger.info("Statistics reset")
