"""On-chain verifier contract access."""

from .chain_client import Web3ChainClient, VERIFIER_ABI

__all__ = ['Web3ChainClient', 'VERIFIER_ABI']
