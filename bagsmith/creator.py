"""Turn a directory into a bag in place.

Creating a bag moves and writes files. If anything fails part way through, the
directory is left as it was at that moment: payload may already be moved into
`data/` and manifests may be missing or partially written. Nothing is rolled
back, so never run two creations on the same directory at once and don't try to
resume a failed one; restore the directory from its source and start again.
"""

import logging
import os

from pathlib import Path
from threading import Event
from typing import Iterable, Optional

from bagsmith.domain import Bag, DOT_BAGIT_VERSION, LEGACY_VERSION
from bagsmith.hashers import DEFAULT_ALGORITHMS, get_hashers
from bagsmith.utils import create_dir_if_not_exist, is_hidden
from bagsmith.walk import build_payload_manifests, build_tag_manifests, check_cancelled
from bagsmith.writer import write_bagit_file, write_payload_manifests, write_tag_manifests

logger = logging.getLogger(__name__)


class BagCreator:
    """Creates bags using a fixed set of checksum algorithms.

    Unavailable algorithms raise `UnsupportedAlgorithmError` here rather than
    during bag creation.
    """

    def __init__(self, algorithms: Iterable[str] = DEFAULT_ALGORITHMS, workers: Optional[int] = None):
        self.hashers = get_hashers(algorithms)
        self.workers = workers

    def bag_in_place(self, root: Path, include_hidden: bool = False, cancel_event: Optional[Event] = None) -> Bag:
        """Create a version 0.97 bag, moving the contents of `root` into `root/data`.

        Hidden top level entries stay where they are unless `include_hidden` is set.
        Raises `FileExistsError` if `root/data` already exists.
        """
        bag = Bag(LEGACY_VERSION, Path(root))
        logger.info("Creating a bag with version: [%s] in directory: [%s]", bag.version, bag.root_dir)

        data_dir = bag.payload_dir
        data_dir.mkdir()
        for path in sorted(bag.root_dir.iterdir()):
            check_cancelled(cancel_event)
            if path == data_dir:
                continue
            if include_hidden or not is_hidden(path):
                logger.debug("Moving [%s] to [%s]", path, data_dir)
                os.rename(path, data_dir / path.name)
            else:
                logger.debug("Leaving hidden [%s] in place", path)

        logger.info("Creating payload manifest(s)")
        bag.payload_manifests.extend(
            build_payload_manifests(bag, self.hashers, include_hidden, self.workers, cancel_event)
        )
        write_bagit_file(bag.version, bag.file_encoding, bag.metadata_dir)
        write_payload_manifests(bag.payload_manifests, bag.metadata_dir, bag.file_encoding)

        logger.info("Creating tag manifest(s)")
        bag.tag_manifests.extend(
            build_tag_manifests(bag, self.hashers, include_hidden, self.workers, cancel_event)
        )
        write_tag_manifests(bag.tag_manifests, bag.metadata_dir, bag.file_encoding)

        return bag

    def create_dot_bagit(self, root: Path, include_hidden: bool = False, cancel_event: Optional[Event] = None) -> Bag:
        """Create a version 2.0 bag, leaving payload in place and writing metadata to `root/.bagit`.

        Manifest paths are relative to `root`. Tag manifests are not written for this layout yet.
        """
        bag = Bag(DOT_BAGIT_VERSION, Path(root))
        logger.info("Creating a bag with version: [%s] in directory: [%s]", bag.version, bag.root_dir)

        create_dir_if_not_exist(bag.metadata_dir)

        logger.info("Creating payload manifest(s)")
        bag.payload_manifests.extend(
            build_payload_manifests(bag, self.hashers, include_hidden, self.workers, cancel_event)
        )
        write_bagit_file(bag.version, bag.file_encoding, bag.metadata_dir)
        write_payload_manifests(bag.payload_manifests, bag.metadata_dir, bag.file_encoding)

        return bag
