"""
L1 Domain — Archive digests.

Format checks for declared digests and hashers for streaming downloads.
Digests are written ``algo:hex`` when serialized as one string.
"""

from __future__ import annotations

import hashlib
import re

SUPPORTED_ALGORITHMS: dict[str, int] = {
    "sha256": hashlib.sha256().digest_size * 2,
    "sha384": hashlib.sha384().digest_size * 2,
    "sha512": hashlib.sha512().digest_size * 2,
    "sha1": hashlib.sha1().digest_size * 2,
}

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


def check_digest(algorithm: str, hexdigest: str) -> str | None:
    """Validate a declared digest.

    Returns:
        Error message, or ``None`` if the algorithm is supported and the
        hex string has the right length and alphabet.
    """
    expected_len = SUPPORTED_ALGORITHMS.get(algorithm)
    if expected_len is None:
        return (
            f"Unsupported digest algorithm {algorithm!r}. "
            f"Supported: {', '.join(sorted(SUPPORTED_ALGORITHMS))}"
        )
    if not isinstance(hexdigest, str) or not _HEX_RE.match(hexdigest):
        return f"{algorithm} digest must be hexadecimal"
    if len(hexdigest) != expected_len:
        return (
            f"{algorithm} digest must be {expected_len} hex characters, "
            f"got {len(hexdigest)}"
        )
    return None


def split_digest(value: str) -> tuple[str, str]:
    """Split ``"sha256:abc..."`` into ``("sha256", "abc...")``.

    A bare hex string is assumed to be sha256.
    """
    if ":" in value:
        algo, hexdigest = value.split(":", 1)
        return algo.strip().lower(), hexdigest.strip()
    return "sha256", value.strip()


def new_hasher(algorithm: str):
    """Return a fresh hashlib object for ``algorithm``."""
    return hashlib.new(algorithm)


def digests_match(expected: str, actual: str) -> bool:
    """Byte-exact comparison, case-insensitive on the hex alphabet."""
    return expected.lower() == actual.lower()
