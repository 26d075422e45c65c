"""Walking directory trees to build, check and measure manifests.

`walk_tree` calls a visitor for every directory and regular file below a start
directory, in name order. The visitor decides whether to go on, skip a
directory's subtree or stop the walk. The functions below it are the visitors
used by the creator and the verifier; each keeps its own accumulator and
returns it when the walk is done.
"""

import logging
import os

from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import Event
from typing import Callable, Collection, Iterator, NamedTuple, Optional

from bagsmith.domain import Bag, DOT_BAGIT_DIR_NAME, Manifest
from bagsmith.errors import FileNotInManifestError, OperationCancelledError
from bagsmith.hashers import Hasher, digest_file
from bagsmith.utils import is_hidden, relative_posix

logger = logging.getLogger(__name__)

KEEP_FILE_NAME = ".keep"


class Visit(Enum):
    CONTINUE = "continue"
    SKIP_SUBTREE = "skip_subtree"
    TERMINATE = "terminate"


Visitor = Callable[[Path, bool], Visit]


class FileCount(NamedTuple):
    count: int
    total_size: int

    @property
    def payload_oxum(self) -> str:
        return f"{self.total_size}.{self.count}"


@dataclass(frozen=True)
class WalkPolicy:
    """Which directories are entered and which files are included in a walk.

    `.bagit` is reserved for bag metadata in every bag version and is never
    entered, whether hidden files are included or not.
    """
    include_hidden: bool = False
    reserved_dir_name: Optional[str] = DOT_BAGIT_DIR_NAME
    excluded_dirs: frozenset = frozenset()

    def enters(self, directory: Path) -> bool:
        if directory in self.excluded_dirs:
            return False
        if self.reserved_dir_name is not None and directory.name == self.reserved_dir_name:
            return False
        return self.include_hidden or not is_hidden(directory)

    def includes(self, file: Path) -> bool:
        # .keep marks otherwise empty directories and is always kept
        return self.include_hidden or file.name == KEEP_FILE_NAME or not is_hidden(file)


def check_cancelled(cancel_event: Optional[Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError("Operation was cancelled")


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def walk_tree(start: Path, visitor: Visitor, cancel_event: Optional[Event] = None) -> bool:
    """Visit everything below `start`, returning False if the visitor terminated the walk.

    Symbolic links to directories are not followed; anything that is neither a
    directory nor a regular file is ignored.
    """
    # one entry iterator per open directory level
    pending = [iter(_sorted_entries(start))]
    while pending:
        entry = next(pending[-1], None)
        if entry is None:
            pending.pop()
            continue
        check_cancelled(cancel_event)
        path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            result = visitor(path, True)
            if result is Visit.TERMINATE:
                return False
            if result is Visit.CONTINUE:
                pending.append(iter(_sorted_entries(path)))
        elif entry.is_file():
            if visitor(path, False) is Visit.TERMINATE:
                return False
    return True


def _policy_visitor(policy: WalkPolicy, on_file: Callable[[Path], None]) -> Visitor:
    def visit(path: Path, is_dir: bool) -> Visit:
        if is_dir:
            if policy.enters(path):
                return Visit.CONTINUE
            logger.debug("Skipping directory [%s]", path)
            return Visit.SKIP_SUBTREE
        if policy.includes(path):
            on_file(path)
        else:
            logger.debug("Skipping [%s] since we are ignoring hidden files", path)
        return Visit.CONTINUE
    return visit


def collect_files(start: Path, policy: WalkPolicy, cancel_event: Optional[Event] = None) -> list[Path]:
    """Every file below `start` that `policy` includes, in walk order."""
    files = []
    walk_tree(start, _policy_visitor(policy, files.append), cancel_event)
    return files


def digest_files(
    files: Collection[Path],
    hashers: Collection[Hasher],
    workers: Optional[int] = None,
    cancel_event: Optional[Event] = None,
) -> Iterator[tuple[Path, dict[str, str]]]:
    """Yield `(path, digests)` for every file, in the order given.

    With `workers` above one the files are hashed in a thread pool, results are
    still yielded in order.
    """
    if not workers or workers <= 1:
        for path in files:
            check_cancelled(cancel_event)
            yield path, digest_file(path, hashers)
        return

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bagsmith-digest")
    try:
        futures = [executor.submit(digest_file, path, hashers) for path in files]
        for path, future in zip(files, futures):
            check_cancelled(cancel_event)
            yield path, future.result()
    finally:
        executor.shutdown(wait=True, cancel_futures=True)


def build_manifests(
    start: Path,
    bag_root: Path,
    hashers: dict[str, Hasher],
    policy: WalkPolicy,
    workers: Optional[int] = None,
    cancel_event: Optional[Event] = None,
) -> list[Manifest]:
    """Digest every included file below `start` into one manifest per algorithm.

    Paths are recorded relative to `bag_root`.
    """
    manifests = {token: Manifest(token) for token in hashers}
    files = collect_files(start, policy, cancel_event)
    with closing(digest_files(files, list(hashers.values()), workers, cancel_event)) as results:
        for path, digests in results:
            relative_path = relative_posix(path, bag_root)
            for token, checksum in digests.items():
                manifests[token].put(relative_path, checksum)
    logger.debug("Digested %d file(s) below [%s]", len(files), start)
    return list(manifests.values())


def build_payload_manifests(
    bag: Bag,
    hashers: dict[str, Hasher],
    include_hidden: bool,
    workers: Optional[int] = None,
    cancel_event: Optional[Event] = None,
) -> list[Manifest]:
    policy = WalkPolicy(include_hidden=include_hidden)
    return build_manifests(bag.payload_dir, bag.root_dir, hashers, policy, workers, cancel_event)


def build_tag_manifests(
    bag: Bag,
    hashers: dict[str, Hasher],
    include_hidden: bool,
    workers: Optional[int] = None,
    cancel_event: Optional[Event] = None,
) -> list[Manifest]:
    """Digest the bag's own files: the declaration and the payload manifests.

    Must run after those have been written, otherwise they are missed.
    """
    policy = WalkPolicy(include_hidden=include_hidden, excluded_dirs=frozenset([bag.payload_dir]))
    return build_manifests(bag.metadata_dir, bag.root_dir, hashers, policy, workers, cancel_event)


def check_payload_in_manifests(
    start: Path,
    bag_root: Path,
    listed_paths: Collection[str],
    policy: WalkPolicy,
    cancel_event: Optional[Event] = None,
):
    """Raise `FileNotInManifestError` for the first included file missing from `listed_paths`."""
    def check(path: Path):
        relative_path = relative_posix(path, bag_root)
        if relative_path not in listed_paths:
            raise FileNotInManifestError(relative_path)
        logger.debug("[%s] is in at least one manifest", relative_path)

    walk_tree(start, _policy_visitor(policy, check), cancel_event)


def count_files_and_size(start: Path, policy: WalkPolicy, cancel_event: Optional[Event] = None) -> FileCount:
    count = 0
    total_size = 0

    def add(path: Path):
        nonlocal count, total_size
        size = path.stat().st_size
        logger.debug("File [%s] has a size of [%d] bytes", path, size)
        count += 1
        total_size += size

    walk_tree(start, _policy_visitor(policy, add), cancel_event)
    return FileCount(count, total_size)
