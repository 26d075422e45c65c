"""Read existing bags back from disk."""

import logging
import posixpath
import re

from pathlib import Path

from bagsmith.domain import Bag, DOT_BAGIT_DIR_NAME, Manifest, Version
from bagsmith.errors import InvalidBagError
from bagsmith.hashers import get_hasher
from bagsmith.writer import BAGIT_FILE_NAME, PAYLOAD_MANIFEST_PREFIX, TAG_MANIFEST_PREFIX

logger = logging.getLogger(__name__)

_ENCODED_CHAR_RE = re.compile("%(0D|0A|25)", re.IGNORECASE)
_DECODED_CHARS = {"0D": "\r", "0A": "\n", "25": "%"}
# digest, then exactly one separator; everything after it is the path
_MANIFEST_LINE_RE = re.compile(r"^([0-9A-Fa-f]+)(?:  | |\t)(.*)$")


def find_bagit_file(bag_directory: Path):
    """Locate the declaration of a bag in either layout, or None."""
    for candidate in (bag_directory / DOT_BAGIT_DIR_NAME / BAGIT_FILE_NAME, bag_directory / BAGIT_FILE_NAME):
        if candidate.is_file():
            return candidate
    return None


def is_bag(bag_directory: Path) -> bool:
    """Check if directory is a BagIt archive."""
    return find_bagit_file(bag_directory) is not None


def read_bagit_file(bagit_file: Path) -> tuple[Version, str]:
    """Return the version and tag file encoding declared in `bagit_file`."""
    tags = {}
    with open(bagit_file, "r", encoding="utf-8-sig") as fp:
        for line in fp:
            key, separator, value = line.partition(":")
            if separator:
                tags[key.strip()] = value.strip()

    try:
        version = Version.from_string(tags["BagIt-Version"])
        encoding = tags["Tag-File-Character-Encoding"]
    except (KeyError, ValueError) as error:
        raise InvalidBagError(f"'{bagit_file}' is not a valid bag declaration") from error
    return version, encoding


def decode_path(path: str) -> str:
    return _ENCODED_CHAR_RE.sub(lambda match: _DECODED_CHARS[match.group(1).upper()], path)


def normalize_manifest_path(path: str, manifest_file: Path) -> str:
    """Normalize a manifest path, refusing anything that points outside the bag."""
    normalized = posixpath.normpath(path)
    if posixpath.isabs(normalized) or normalized == ".." or normalized.startswith("../"):
        raise InvalidBagError(f"Path '{path}' in '{manifest_file}' points outside of the bag")
    return normalized


def read_manifest(manifest_file: Path, algorithm: str, encoding: str) -> Manifest:
    manifest = Manifest(algorithm)
    with open(manifest_file, "r", encoding=encoding) as fp:
        for line_number, line in enumerate(fp, start=1):
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            match = _MANIFEST_LINE_RE.match(line)
            if match is None or not match.group(2):
                raise InvalidBagError(f"Line {line_number} of '{manifest_file}' is not '<checksum>  <path>'")
            checksum, path = match.groups()
            manifest.put(normalize_manifest_path(decode_path(path), manifest_file), checksum)
    return manifest


def read_manifests(metadata_dir: Path, prefix: str, encoding: str) -> list[Manifest]:
    manifests = []
    for manifest_file in sorted(metadata_dir.glob(f"{prefix}-*.txt")):
        algorithm = manifest_file.name[len(prefix) + 1:-len(".txt")]
        # raises for algorithms we can't recompute
        hasher = get_hasher(algorithm)
        logger.debug("Reading %s manifest [%s]", hasher.name, manifest_file)
        manifests.append(read_manifest(manifest_file, hasher.bagit_name, encoding))
    return manifests


def read_bag(bag_directory: Path) -> Bag:
    """Load the declaration and all manifests of the bag at `bag_directory`."""
    bag_directory = Path(bag_directory)
    bagit_file = find_bagit_file(bag_directory)
    if bagit_file is None:
        raise InvalidBagError(f"No {BAGIT_FILE_NAME} found in '{bag_directory}'")

    version, encoding = read_bagit_file(bagit_file)
    bag = Bag(version, bag_directory, file_encoding=encoding)
    if bag.metadata_dir != bagit_file.parent:
        raise InvalidBagError(f"Version {version} bags don't keep {BAGIT_FILE_NAME} in '{bagit_file.parent}'")

    bag.payload_manifests.extend(read_manifests(bag.metadata_dir, PAYLOAD_MANIFEST_PREFIX, encoding))
    if not bag.payload_manifests:
        raise InvalidBagError(f"No payload manifest found in '{bag.metadata_dir}'")
    bag.tag_manifests.extend(read_manifests(bag.metadata_dir, TAG_MANIFEST_PREFIX, encoding))
    logger.info("Read bag with version: [%s] in directory: [%s]", version, bag_directory)
    return bag
