from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any
import logging
import os

import yaml

from zk.zk_verifier import CircuitConfig, DEFAULT_CIRCUITS

logger = logging.getLogger(__name__)

# Environment variables holding deployed verifier contract addresses
CONTRACT_ADDRESS_ENV = {
    'access': 'ACCESS_VERIFIER_ADDRESS',
    'computation': 'COMPUTATION_VERIFIER_ADDRESS',
    'ownership': 'OWNERSHIP_VERIFIER_ADDRESS',
}


def contract_addresses_from_env() -> Dict[str, str]:
    """Contract addresses set in the environment, keyed by circuit"""
    addresses = {}
    for circuit, env_name in CONTRACT_ADDRESS_ENV.items():
        value = os.getenv(env_name)
        if value:
            addresses[circuit] = value
    return addresses


def default_circuit_config() -> Dict[str, CircuitConfig]:
    return {name: CircuitConfig(cfg.description, cfg.max_constraints) for name, cfg in DEFAULT_CIRCUITS.items()}


@dataclass
class VerifierConfig:
    circuits_dir: Path = field(default_factory=lambda: Path("circuits"))
    circuit_config: Dict[str, CircuitConfig] = field(default_factory=default_circuit_config)
    enable_caching: bool = True
    contract_addresses: Dict[str, str] = field(default_factory=contract_addresses_from_env)
    rpc_url: Optional[str] = field(default_factory=lambda: os.getenv("ZK_RPC_URL"))
    snarkjs_bin: str = "snarkjs"

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.circuits_dir = Path(self.circuits_dir)
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)
        self.circuit_config = {
            str(name): CircuitConfig.coerce(cfg) for name, cfg in self.circuit_config.items()
        }

        # Environment fills in addresses the config file leaves out
        self.contract_addresses = dict(self.contract_addresses)
        for circuit, address in contract_addresses_from_env().items():
            self.contract_addresses.setdefault(circuit, address)


def load_config(config_path: Optional[Path] = None) -> VerifierConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = Path("config.yaml")
    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

            circuits = config_data.get('circuits')
            return VerifierConfig(
                circuits_dir=Path(config_data.get('circuits_dir', 'circuits')),
                circuit_config=circuits if circuits else default_circuit_config(),
                enable_caching=config_data.get('enable_caching', True),
                contract_addresses=dict(config_data.get('contract_addresses') or {}),
                rpc_url=config_data.get('rpc_url', os.getenv("ZK_RPC_URL")),
                snarkjs_bin=config_data.get('snarkjs_bin', 'snarkjs'),
                log_dir=Path(config_data.get('log_dir', 'logs')),
                results_dir=Path(config_data.get('results_dir', 'results')),
                enable_debug_mode=config_data.get('enable_debug_mode', False)
            )
        except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Could not load config file {config_path}: {e}")
            logger.warning("Using default configuration")

    return VerifierConfig()


def save_config(config: VerifierConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data = {
        'circuits_dir': str(config.circuits_dir),
        'circuits': {
            name: {
                'description': cfg.description,
                'max_constraints': cfg.max_constraints
            }
            for name, cfg in config.circuit_config.items()
        },
        'enable_caching': config.enable_caching,
        'contract_addresses': dict(config.contract_addresses),
        'rpc_url': config.rpc_url,
        'snarkjs_bin': config.snarkjs_bin,
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'enable_debug_mode': config.enable_debug_mode
    }

    with open(config_path, 'w') as f:
        yaml.safe_dump(config_data, f, default_flow_style=False)
