"""Bags, their versions and manifests."""

import re

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

DATA_DIR_NAME = "data"
DOT_BAGIT_DIR_NAME = ".bagit"
DEFAULT_ENCODING = "UTF-8"

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def is_hex_digest(checksum: str) -> bool:
    return bool(_HEX_RE.match(checksum))


@dataclass(frozen=True, order=True)
class Version:
    major: int
    minor: int

    @classmethod
    def from_string(cls, version: str) -> "Version":
        major, _, minor = version.strip().partition(".")
        return cls(int(major), int(minor))

    @property
    def uses_dot_bagit(self) -> bool:
        return self >= DOT_BAGIT_VERSION

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


LEGACY_VERSION = Version(0, 97)
DOT_BAGIT_VERSION = Version(2, 0)


@dataclass
class Manifest:
    """Checksums for one algorithm, keyed by path relative to the bag root.

    A manifest is a snapshot of the files as they were read when it was built.
    """
    algorithm: str
    file_to_checksum: dict[str, str] = field(default_factory=dict)

    def put(self, path: str, checksum: str):
        checksum = checksum.lower()
        assert path, "manifest paths must not be empty"
        assert is_hex_digest(checksum), f"'{checksum}' is not a hex digest"
        self.file_to_checksum[path] = checksum

    def get(self, path: str) -> Optional[str]:
        return self.file_to_checksum.get(path)

    def entries(self) -> Iterator[tuple[str, str]]:
        for path in sorted(self.file_to_checksum):
            yield path, self.file_to_checksum[path]

    def paths(self) -> set[str]:
        return set(self.file_to_checksum)

    def update(self, other: "Manifest"):
        if other.algorithm != self.algorithm:
            raise ValueError(f"Cannot merge a {other.algorithm} manifest into a {self.algorithm} manifest")
        self.file_to_checksum.update(other.file_to_checksum)

    def __len__(self) -> int:
        return len(self.file_to_checksum)

    def __contains__(self, path: str) -> bool:
        return path in self.file_to_checksum


@dataclass
class Bag:
    version: Version
    root_dir: Path
    file_encoding: str = DEFAULT_ENCODING
    payload_manifests: list[Manifest] = field(default_factory=list)
    tag_manifests: list[Manifest] = field(default_factory=list)

    @property
    def payload_dir(self) -> Path:
        if self.version.uses_dot_bagit:
            return self.root_dir
        return self.root_dir / DATA_DIR_NAME

    @property
    def metadata_dir(self) -> Path:
        if self.version.uses_dot_bagit:
            return self.root_dir / DOT_BAGIT_DIR_NAME
        return self.root_dir

    def payload_paths(self) -> set[str]:
        """Every path listed in at least one payload manifest."""
        paths = set()
        for manifest in self.payload_manifests:
            paths |= manifest.paths()
        return paths
