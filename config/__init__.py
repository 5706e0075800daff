"""Configuration management for the proof verifier."""

from .config import VerifierConfig, load_config, save_config, contract_addresses_from_env

__all__ = ['VerifierConfig', 'load_config', 'save_config', 'contract_addresses_from_env']
