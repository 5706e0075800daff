import asyncio
import logging
import json
import time
from typing import Any, Dict, Optional
from pathlib import Path
import argparse
import sys

from zk.zk_verifier import ProofVerifier, PolicyMetadata, VerifyOptions, BackendKind, ZKVerifierError
from config.config import VerifierConfig, load_config
from utils.utils import setup_logging, save_results, compute_hash, get_system_info

logger = logging.getLogger(__name__)

POLICY_CIRCUITS = ('access', 'computation', 'ownership')


def _read_json(path: Path) -> Any:
    with open(path, 'r') as f:
        return json.load(f)


def build_verifier(config: VerifierConfig, on_chain: bool = False) -> ProofVerifier:
    chain_client = None
    if on_chain:
        from chain.chain_client import Web3ChainClient
        chain_client = Web3ChainClient(rpc_url=config.rpc_url)
    return ProofVerifier.from_config(config, chain_client=chain_client)


async def run_verify(config: VerifierConfig, circuit: str, proof_path: Path, public_path: Path,
                     policy_path: Optional[Path] = None, on_chain: bool = False,
                     verbose: bool = False) -> Dict[str, Any]:
    verifier = build_verifier(config, on_chain)

    proof = _read_json(proof_path)
    public_signals = _read_json(public_path)
    options = VerifyOptions(
        backend=BackendKind.ON_CHAIN if on_chain else BackendKind.OFF_CHAIN,
        verbose=verbose
    )

    if policy_path is not None or circuit in POLICY_CIRCUITS:
        policy = PolicyMetadata.from_dict(_read_json(policy_path)) if policy_path else PolicyMetadata()
        outcome = await verifier.verify_with_policy_detailed(circuit, proof, public_signals, policy, options)
    else:
        outcome = await verifier.verify_detailed(circuit, proof, public_signals, options)

    return {
        'circuit': circuit,
        'accepted': outcome.accepted,
        'failure_kind': outcome.failure_kind,
        'reason': outcome.reason,
        'elapsed_ms': round(outcome.elapsed_ms, 2),
        'proof_sha256': compute_hash(proof),
        'backend': options.backend,
        'statistics': verifier.get_statistics(),
        'verified_at': time.time()
    }


async def run_export(config: VerifierConfig, circuit: str, output: Optional[Path]) -> str:
    verifier = build_verifier(config)
    return await verifier.export_verifier_source(circuit, output)


async def run_info(config: VerifierConfig) -> Dict[str, Any]:
    verifier = build_verifier(config)
    circuits = {}
    for name, cfg in verifier.circuit_config.items():
        entry = {
            'description': cfg.description,
            'max_constraints': cfg.max_constraints,
            'key_path': str(verifier.key_store.key_path(name)),
            'contract_address': config.contract_addresses.get(name),
        }
        try:
            entry['key_sha256'] = await verifier.key_store.fingerprint(name)
        except ZKVerifierError as e:
            entry['key_error'] = str(e)
        circuits[name] = entry

    return {
        'circuits_dir': str(config.circuits_dir),
        'caching': config.enable_caching,
        'circuits': circuits,
        'system_info': get_system_info()
    }


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Zero-knowledge proof verification gate')
    parser.add_argument('--config', type=str,
                        default='config.yaml', help='Config file path')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Logging level (default INFO, DEBUG in debug mode)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    verify_parser = subparsers.add_parser('verify', help='Verify a proof')
    verify_parser.add_argument('circuit', help='Circuit type')
    verify_parser.add_argument('proof', type=Path, help='proof.json')
    verify_parser.add_argument('public', type=Path, help='public.json')
    verify_parser.add_argument('--policy', type=Path, default=None,
                               help='Policy metadata JSON')
    verify_parser.add_argument('--on-chain', action='store_true',
                               help='Verify through the deployed contract')
    verify_parser.add_argument('--verbose', action='store_true')
    verify_parser.add_argument('--report', type=Path, default=None,
                               help='Write a JSON report here')

    export_parser = subparsers.add_parser('export-verifier',
                                          help='Render a Solidity verifier')
    export_parser.add_argument('circuit', help='Circuit type')
    export_parser.add_argument('--output', type=Path, default=None)

    subparsers.add_parser('info', help='Show configured circuits and keys')

    args = parser.parse_args(argv)

    config = load_config(Path(args.config))
    log_level = args.log_level or ('DEBUG' if config.enable_debug_mode else 'INFO')
    setup_logging(log_level, log_dir=config.log_dir)

    if args.command == 'verify':
        result = asyncio.run(run_verify(
            config, args.circuit, args.proof, args.public,
            policy_path=args.policy, on_chain=args.on_chain, verbose=args.verbose))
        status = "ACCEPTED" if result['accepted'] else "REJECTED"
        print(f"{args.circuit}: {status} ({result['elapsed_ms']}ms)")
        if result['reason']:
            print(f"  reason: {result['reason']}")
        if args.report:
            save_results(result, args.report)
        return 0 if result['accepted'] else 1

    if args.command == 'export-verifier':
        try:
            source = asyncio.run(run_export(config, args.circuit, args.output))
        except ZKVerifierError as e:
            print(f"Export failed: {e}", file=sys.stderr)
            return 1
        if args.output is None:
            print(source)
        else:
            print(f"Verifier written to {args.output}")
        return 0

    if args.command == 'info':
        info = asyncio.run(run_info(config))
        print(json.dumps(info, indent=2, default=str))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
