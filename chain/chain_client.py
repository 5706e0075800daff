"""
Chain client for deployed Groth16 verifier contracts
====================================================

Read-only ``verifyProof`` calls over JSON-RPC through web3.

[USAGE]
    client = Web3ChainClient(rpc_url="http://localhost:8545")
    ok = await client.call_verify(address, a, b, c, public_signals)
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional, Sequence

from web3 import Web3

from zk.zk_verifier import ChainCallFailure

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://localhost:8545"

VERIFIER_ABI = [
    {
        "inputs": [
            {"name": "a", "type": "uint256[2]"},
            {"name": "b", "type": "uint256[2][2]"},
            {"name": "c", "type": "uint256[2]"},
            {"name": "input", "type": "uint256[]"},
        ],
        "name": "verifyProof",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class Web3ChainClient:
    """
    Read-only access to verifier contracts.

    web3's HTTP provider is blocking, so calls run in the default executor
    and the event loop keeps serving other verifications meanwhile.
    """

    def __init__(self, rpc_url: Optional[str] = None, web3: Optional[Any] = None):
        """
        Args:
            rpc_url: JSON-RPC endpoint (or from ZK_RPC_URL env)
            web3: Pre-built Web3 instance, used instead of rpc_url
        """
        self.rpc_url = rpc_url or os.getenv("ZK_RPC_URL", DEFAULT_RPC_URL)
        self.w3 = web3 if web3 is not None else Web3(Web3.HTTPProvider(self.rpc_url))
        self._contracts: Dict[str, Any] = {}

        logger.info(f"Chain client using {self.rpc_url}")

    def is_connected(self) -> bool:
        try:
            return bool(self.w3.is_connected())
        except Exception as e:
            logger.warning(f"Chain connection check failed: {e}")
            return False

    def _contract(self, address: str):
        checksum = Web3.to_checksum_address(address)
        contract = self._contracts.get(checksum)
        if contract is None:
            contract = self.w3.eth.contract(address=checksum, abi=VERIFIER_ABI)
            self._contracts[checksum] = contract
        return contract

    async def call_verify(self, address: str, a: Sequence[int], b: Sequence[Sequence[int]],
                          c: Sequence[int], public_signals: Sequence[Any]) -> bool:
        """Invoke verifyProof(a, b, c, input) as an eth_call"""
        try:
            contract = self._contract(address)
            call = contract.functions.verifyProof(
                [int(x) for x in a],
                [[int(x) for x in row] for row in b],
                [int(x) for x in c],
                [int(s) for s in public_signals],
            ).call
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, call)
        except Exception as e:
            raise ChainCallFailure(f"verifyProof call to {address} failed: {e}") from e

        logger.debug(f"verifyProof at {address} returned {result}")
        return bool(result)
