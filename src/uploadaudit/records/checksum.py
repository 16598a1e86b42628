from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

UNKNOWN_DIGEST = "unknown"


def compute_digest(
    file_path: Path,
    algorithm: str = "sha256",
    chunk_size: int = 1_048_576,
) -> str:
    """Return the hex digest of a file.

    The digest is metadata only: if the interpreter cannot provide the
    requested algorithm, ``"unknown"`` is returned instead of failing.
    """
    try:
        digest = hashlib.new(algorithm)
    except ValueError:
        logger.warning("Hash algorithm %s unavailable; digest of %s unknown",
                       algorithm, file_path)
        return UNKNOWN_DIGEST

    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
