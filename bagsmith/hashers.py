"""Checksum algorithms used for manifests."""

import hashlib
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from bagsmith.errors import UnsupportedAlgorithmError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")
CHUNK_SIZE = 512 * 1024

# bagit token -> display name
KNOWN_ALGORITHMS = {
    "md5": "MD5",
    "sha1": "SHA-1",
    "sha224": "SHA-224",
    "sha256": "SHA-256",
    "sha384": "SHA-384",
    "sha512": "SHA-512",
    "sha3_256": "SHA3-256",
    "sha3_512": "SHA3-512",
    "blake2b": "BLAKE2b",
}


@dataclass(frozen=True)
class Hasher:
    name: str
    bagit_name: str

    def new(self):
        return hashlib.new(self.bagit_name)


def normalize_algorithm(algorithm: str) -> str:
    """Turn 'SHA-256', 'SHA256' or 'sha256' into the bagit token 'sha256'."""
    token = algorithm.strip().lower()
    if token.startswith("sha3-"):
        return token.replace("-", "_")
    return token.replace("-", "")


def get_hasher(algorithm: str) -> Hasher:
    """Build a hasher, checking now that the runtime can compute the algorithm."""
    token = normalize_algorithm(algorithm)
    if token not in KNOWN_ALGORITHMS:
        raise UnsupportedAlgorithmError(algorithm)
    try:
        hashlib.new(token)
    except ValueError as error:
        raise UnsupportedAlgorithmError(algorithm) from error
    return Hasher(name=KNOWN_ALGORITHMS[token], bagit_name=token)


def get_hashers(algorithms: Iterable[str] = DEFAULT_ALGORITHMS) -> dict[str, Hasher]:
    """Map bagit token to hasher for every requested algorithm.

    All algorithms are checked up front so that an unavailable one is reported
    before any file is touched.
    """
    hashers = {}
    for algorithm in algorithms:
        hasher = get_hasher(algorithm)
        hashers[hasher.bagit_name] = hasher
    if not hashers:
        raise ValueError("At least one checksum algorithm is required")
    return hashers


def digest_file(path: Path, hashers: Iterable[Hasher]) -> dict[str, str]:
    """Read `path` once and return the hex digest for each hasher, keyed by bagit token."""
    digests = {hasher.bagit_name: hasher.new() for hasher in hashers}
    with open(path, "rb") as fp:
        while True:
            chunk = fp.read(CHUNK_SIZE)
            if not chunk:
                break
            for digest in digests.values():
                digest.update(chunk)
    logger.debug("Digested [%s] with %s", path, ", ".join(digests))
    return {token: digest.hexdigest() for token, digest in digests.items()}
