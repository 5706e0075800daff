"""
snarkjs command-line verification primitive
"""

import asyncio
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, List, Mapping

from .zk_verifier import CryptoBackendFailure, Proof

logger = logging.getLogger(__name__)


def _write_private(path: Path, data: Any) -> Path:
    """Write JSON readable only by the current user"""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, stat.S_IRUSR | stat.S_IWUSR)
    with os.fdopen(fd, 'w') as f:
        json.dump(data, f)
    return path


class SnarkjsPrimitive:
    """Runs ``snarkjs <protocol> verify`` on temporary files"""

    def __init__(self, snarkjs_bin: str = "snarkjs", protocol: str = "groth16"):
        self.snarkjs_bin = snarkjs_bin
        self.protocol = protocol

    async def __call__(self, verification_key: Mapping[str, Any], public_signals: List[str],
                       proof: Proof) -> bool:
        with tempfile.TemporaryDirectory(prefix="zkverify_") as temp_dir:
            temp_path = Path(temp_dir)
            vkey_file = _write_private(temp_path / "vkey.json", dict(verification_key))
            public_file = _write_private(temp_path / "public.json", [str(s) for s in public_signals])
            proof_file = _write_private(temp_path / "proof.json", proof.to_snarkjs())

            cmd = [
                self.snarkjs_bin, self.protocol, 'verify',
                str(vkey_file),
                str(public_file),
                str(proof_file)
            ]

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE
                )
            except OSError as e:
                raise CryptoBackendFailure(f"Cannot run {self.snarkjs_bin}: {e}") from e

            stdout, stderr = await process.communicate()

        output = stdout.decode(errors='replace')
        if process.returncode != 0 and stderr:
            logger.debug(f"snarkjs stderr: {stderr.decode(errors='replace').strip()}")
        return process.returncode == 0 and "OK!" in output
