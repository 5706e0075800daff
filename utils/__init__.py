"""Utilities for the proof verifier."""

from .utils import (
    setup_logging,
    save_results,
    compute_hash,
    get_system_info
)

__all__ = [
    'setup_logging',
    'save_results',
    'compute_hash',
    'get_system_info'
]
