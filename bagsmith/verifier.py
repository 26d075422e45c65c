"""Check that a bag on disk still matches its manifests.

Verification is read-only and stops at the first problem found.
"""

import logging

from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Iterable, Optional

from bagsmith.domain import Bag, Manifest
from bagsmith.errors import CorruptChecksumError, MissingPayloadFileError, VerificationError
from bagsmith.hashers import get_hashers
from bagsmith.reader import read_bag
from bagsmith.walk import WalkPolicy, check_payload_in_manifests, count_files_and_size, digest_files
from bagsmith.writer import PAYLOAD_MANIFEST_PREFIX, TAG_MANIFEST_PREFIX, manifest_file_name

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    valid: bool
    error: Optional[VerificationError] = None

    def __bool__(self) -> bool:
        return self.valid


class BagVerifier:
    def __init__(self, include_hidden: bool = False, workers: Optional[int] = None, cancel_event: Optional[Event] = None):
        self.include_hidden = include_hidden
        self.workers = workers
        self.cancel_event = cancel_event

    def check_complete(self, bag_directory: Path, check_tag_manifests: bool = True) -> Bag:
        """Check that payload files and manifest entries match up, without computing checksums."""
        bag = read_bag(bag_directory)
        self._check_complete(bag, check_tag_manifests)
        return bag

    def verify(self, bag_directory: Path, check_tag_manifests: bool = True) -> Bag:
        """Check completeness, then recompute every checksum in the manifests.

        Raises a `VerificationError` subclass for the first inconsistency found.
        """
        bag = read_bag(bag_directory)
        self._check_complete(bag, check_tag_manifests)

        file_count = count_files_and_size(bag.payload_dir, self._payload_policy(), self.cancel_event)
        logger.info("Verifying checksums of %d payload file(s), %d bytes", file_count.count, file_count.total_size)
        self._verify_checksums(bag, bag.payload_manifests)
        if check_tag_manifests:
            logger.info("Verifying checksums of tag files")
            self._verify_checksums(bag, bag.tag_manifests)
        return bag

    def check(self, bag_directory: Path, check_tag_manifests: bool = True) -> VerificationResult:
        """Like `verify`, but report inconsistencies in the result instead of raising."""
        try:
            self.verify(bag_directory, check_tag_manifests)
        except VerificationError as error:
            logger.info("Bag [%s] is invalid: %s", bag_directory, error)
            return VerificationResult(False, error)
        return VerificationResult(True)

    def _payload_policy(self) -> WalkPolicy:
        return WalkPolicy(include_hidden=self.include_hidden)

    def _check_complete(self, bag: Bag, check_tag_manifests: bool):
        logger.info("Checking that every payload file is in at least one manifest")
        check_payload_in_manifests(
            bag.payload_dir,
            bag.root_dir,
            bag.payload_paths(),
            self._payload_policy(),
            self.cancel_event,
        )

        self._check_entries_exist(bag, bag.payload_manifests, PAYLOAD_MANIFEST_PREFIX)
        if check_tag_manifests:
            self._check_entries_exist(bag, bag.tag_manifests, TAG_MANIFEST_PREFIX)

    def _check_entries_exist(self, bag: Bag, manifests: Iterable[Manifest], prefix: str):
        for manifest in manifests:
            for path, _ in manifest.entries():
                if not (bag.root_dir / path).is_file():
                    raise MissingPayloadFileError(path, manifest_file_name(prefix, manifest.algorithm))

    def _verify_checksums(self, bag: Bag, manifests: list[Manifest]):
        # one read per file, whatever the number of manifests listing it
        expected: dict[str, dict[str, str]] = {}
        for manifest in manifests:
            for path, checksum in manifest.entries():
                expected.setdefault(path, {})[manifest.algorithm] = checksum
        if not expected:
            return

        hashers = get_hashers(manifest.algorithm for manifest in manifests)
        paths = sorted(expected)
        files = [bag.root_dir / path for path in paths]
        with closing(digest_files(files, list(hashers.values()), self.workers, self.cancel_event)) as results:
            for path, (_, digests) in zip(paths, results):
                for algorithm, checksum in sorted(expected[path].items()):
                    if digests[algorithm] != checksum:
                        raise CorruptChecksumError(path, algorithm, checksum, digests[algorithm])
                logger.debug("[%s] matches its manifest checksum(s)", path)
