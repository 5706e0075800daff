"""
Zero-Knowledge Proof Verification Module
Policy-aware Groth16 proof verification with off-chain and on-chain backends
"""

from .zk_verifier import (
    # Core classes
    ProofVerifier,
    VerificationKeyStore,
    SignalPolicyExtractor,
    StatisticsTracker,
    CryptoVerificationBackend,
    OffChainBackend,
    OnChainBackend,
    FileKeyStorage,

    # Data model
    CircuitType,
    CircuitConfig,
    BackendKind,
    FailureKind,
    Proof,
    ProofEntry,
    PolicyMetadata,
    PolicyDecision,
    VerifyOptions,
    VerificationOutcome,
    DEFAULT_CIRCUITS,

    # Exceptions
    ZKVerifierError,
    UnknownCircuitError,
    InvalidProofShapeError,
    InsufficientSignalsError,
    KeyLoadError,
    ExportError,
    BackendUnavailableError,
    CryptoBackendFailure,
    ChainCallFailure,
)
from .snarkjs import SnarkjsPrimitive
from .solidity import render_groth16_verifier

__version__ = "1.0.0"

__all__ = [
    # Classes
    'ProofVerifier',
    'VerificationKeyStore',
    'SignalPolicyExtractor',
    'StatisticsTracker',
    'CryptoVerificationBackend',
    'OffChainBackend',
    'OnChainBackend',
    'FileKeyStorage',
    'SnarkjsPrimitive',
    'render_groth16_verifier',

    # Data model
    'CircuitType',
    'CircuitConfig',
    'BackendKind',
    'FailureKind',
    'Proof',
    'ProofEntry',
    'PolicyMetadata',
    'PolicyDecision',
    'VerifyOptions',
    'VerificationOutcome',
    'DEFAULT_CIRCUITS',

    # Exceptions
    'ZKVerifierError',
    'UnknownCircuitError',
    'InvalidProofShapeError',
    'InsufficientSignalsError',
    'KeyLoadError',
    'ExportError',
    'BackendUnavailableError',
    'CryptoBackendFailure',
    'ChainCallFailure',
]
