"""Write the bag declaration and manifests to disk.

Nothing here is atomic: a failure part way through leaves a partially written file.
"""

import logging

from pathlib import Path
from typing import Iterable

from bagsmith.domain import Manifest, Version

logger = logging.getLogger(__name__)

BAGIT_FILE_NAME = "bagit.txt"
PAYLOAD_MANIFEST_PREFIX = "manifest"
TAG_MANIFEST_PREFIX = "tagmanifest"


def manifest_file_name(prefix: str, algorithm: str) -> str:
    return f"{prefix}-{algorithm}.txt"


def encode_path(path: str) -> str:
    """Escape line breaks so a path always fits on one manifest line.

    `%` is escaped first so a literal `%0A` in a file name survives a round trip.
    """
    return path.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def write_bagit_file(version: Version, encoding: str, output_dir: Path) -> Path:
    bagit_file = output_dir / BAGIT_FILE_NAME
    logger.debug("Writing [%s]", bagit_file)
    with open(bagit_file, "w", encoding="utf-8", newline="\n") as fp:
        fp.write(f"BagIt-Version: {version}\n")
        fp.write(f"Tag-File-Character-Encoding: {encoding}\n")
    return bagit_file


def write_manifests(manifests: Iterable[Manifest], prefix: str, output_dir: Path, encoding: str) -> list[Path]:
    """Write one `<prefix>-<algorithm>.txt` file per manifest into `output_dir`."""
    written = []
    for manifest in manifests:
        manifest_file = output_dir / manifest_file_name(prefix, manifest.algorithm)
        logger.debug("Writing manifest [%s]", manifest_file)
        with open(manifest_file, "w", encoding=encoding, newline="\n") as fp:
            for path, checksum in manifest.entries():
                fp.write(f"{checksum}  {encode_path(path)}\n")
        written.append(manifest_file)
    return written


def write_payload_manifests(manifests: Iterable[Manifest], output_dir: Path, encoding: str) -> list[Path]:
    return write_manifests(manifests, PAYLOAD_MANIFEST_PREFIX, output_dir, encoding)


def write_tag_manifests(manifests: Iterable[Manifest], output_dir: Path, encoding: str) -> list[Path]:
    return write_manifests(manifests, TAG_MANIFEST_PREFIX, output_dir, encoding)
