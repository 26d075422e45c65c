import hashlib
import os
from pathlib import Path

import pytest

from bagsmith.creator import BagCreator
from bagsmith.domain import DOT_BAGIT_VERSION, LEGACY_VERSION
from bagsmith.errors import (
    CorruptChecksumError,
    FileNotInManifestError,
    InvalidBagError,
    MissingPayloadFileError,
    UnsupportedAlgorithmError,
)
from bagsmith.reader import is_bag, read_bag
from bagsmith.verifier import BagVerifier

TREES = [
    {"a.txt": "hello"},
    {"a.txt": "hello", "b/c.txt": "c", "b/d/e.txt": "e" * 1000},
    {"empty/.keep": "", "space in name.txt": "s", "ünïcödé.txt": "u"},
    {"x/y/z/deep.bin": "\x00" * 10, "x/top.txt": "t", ".hidden": "h"},
]


def make_tree(root, files):
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def snapshot(root):
    return {
        os.path.join(dirpath, name): Path(dirpath, name).read_bytes()
        for dirpath, _, filenames in os.walk(root)
        for name in filenames
    }


@pytest.fixture
def bag_dir(tmp_path):
    make_tree(tmp_path, {"a.txt": "hello", "sub/b.txt": "b", ".secret": "x"})
    BagCreator(["md5", "sha256"]).bag_in_place(tmp_path)
    return tmp_path


@pytest.mark.parametrize("files", TREES)
@pytest.mark.parametrize("include_hidden", [False, True])
def test_created_bags_verify(tmp_path, files, include_hidden):
    make_tree(tmp_path, files)
    BagCreator().bag_in_place(tmp_path, include_hidden=include_hidden)

    bag = BagVerifier(include_hidden=include_hidden).verify(tmp_path)

    assert bag.version == LEGACY_VERSION
    for manifest in bag.payload_manifests:
        for path, checksum in manifest.entries():
            assert hashlib.new(manifest.algorithm, (tmp_path / path).read_bytes()).hexdigest() == checksum


@pytest.mark.parametrize("files", TREES)
def test_created_dot_bagit_bags_verify(tmp_path, files):
    make_tree(tmp_path, files)
    BagCreator(["sha1"]).create_dot_bagit(tmp_path)
    assert BagVerifier().check(tmp_path)


def test_read_bag(bag_dir):
    assert is_bag(bag_dir)
    bag = read_bag(bag_dir)

    assert bag.version == LEGACY_VERSION
    assert bag.file_encoding == "UTF-8"
    assert [m.algorithm for m in bag.payload_manifests] == ["md5", "sha256"]
    assert [m.algorithm for m in bag.tag_manifests] == ["md5", "sha256"]
    assert bag.payload_paths() == {"data/a.txt", "data/sub/b.txt"}
    assert bag.payload_manifests[0].get("data/a.txt") == "5d41402abc4b2a76b9719d911017c592"


def test_tampered_file_fails_with_checksum_mismatch(bag_dir):
    (bag_dir / "data" / "a.txt").write_text("hellO")

    with pytest.raises(CorruptChecksumError) as excinfo:
        BagVerifier().verify(bag_dir)

    assert excinfo.value.path == "data/a.txt"
    assert excinfo.value.algorithm == "md5"
    assert excinfo.value.expected == "5d41402abc4b2a76b9719d911017c592"
    assert excinfo.value.actual == hashlib.md5(b"hellO").hexdigest()


def test_tampering_is_not_noticed_by_completeness_check(bag_dir):
    (bag_dir / "data" / "a.txt").write_text("hellO")
    BagVerifier().check_complete(bag_dir)


def test_deleted_file_fails(bag_dir):
    os.remove(bag_dir / "data" / "sub" / "b.txt")

    with pytest.raises(MissingPayloadFileError) as excinfo:
        BagVerifier().verify(bag_dir)

    assert excinfo.value.path == "data/sub/b.txt"
    assert excinfo.value.manifest_name == "manifest-md5.txt"


def test_stray_file_fails(bag_dir):
    (bag_dir / "data" / "stray.txt").write_text("not listed")

    with pytest.raises(FileNotInManifestError) as excinfo:
        BagVerifier().verify(bag_dir)

    assert excinfo.value.path == "data/stray.txt"


def test_stray_hidden_file_is_ignored_unless_hidden_files_are_included(bag_dir):
    (bag_dir / "data" / ".DS_Store").write_text("junk")

    BagVerifier().verify(bag_dir)
    with pytest.raises(FileNotInManifestError):
        BagVerifier(include_hidden=True).verify(bag_dir)


def test_tampered_tag_file(bag_dir):
    with open(bag_dir / "manifest-md5.txt", "a") as fp:
        fp.write("\n")

    with pytest.raises(CorruptChecksumError) as excinfo:
        BagVerifier().verify(bag_dir)
    assert excinfo.value.path == "manifest-md5.txt"

    BagVerifier().verify(bag_dir, check_tag_manifests=False)


def test_check_reports_instead_of_raising(bag_dir):
    assert BagVerifier().check(bag_dir).valid

    (bag_dir / "data" / "a.txt").write_text("changed")
    result = BagVerifier().check(bag_dir)

    assert not result
    assert isinstance(result.error, CorruptChecksumError)
    assert result.error.path == "data/a.txt"


def test_verification_does_not_modify_the_bag(bag_dir):
    (bag_dir / "data" / "a.txt").write_text("changed")
    (bag_dir / "data" / "stray.txt").write_text("stray")
    before = snapshot(bag_dir)

    assert not BagVerifier().check(bag_dir)
    assert not BagVerifier(workers=3).check(bag_dir)

    assert snapshot(bag_dir) == before


def test_verify_with_workers(bag_dir):
    BagVerifier(workers=4).verify(bag_dir)
    (bag_dir / "data" / "sub" / "b.txt").write_text("B")
    with pytest.raises(CorruptChecksumError) as excinfo:
        BagVerifier(workers=4).verify(bag_dir)
    assert excinfo.value.path == "data/sub/b.txt"


def test_dot_bagit_tampering(tmp_path):
    make_tree(tmp_path, {"a.txt": "hello", "sub/b.txt": "b"})
    BagCreator(["sha256"]).create_dot_bagit(tmp_path)

    bag = BagVerifier().verify(tmp_path)
    assert bag.version == DOT_BAGIT_VERSION

    (tmp_path / "sub" / "b.txt").write_text("bb")
    with pytest.raises(CorruptChecksumError) as excinfo:
        BagVerifier().verify(tmp_path)
    assert excinfo.value.path == "sub/b.txt"
    assert excinfo.value.algorithm == "sha256"


def test_not_a_bag(tmp_path):
    assert not is_bag(tmp_path)
    with pytest.raises(InvalidBagError):
        BagVerifier().verify(tmp_path)


def test_bag_without_payload_manifest(tmp_path):
    (tmp_path / "data").mkdir()
    (tmp_path / "bagit.txt").write_text("BagIt-Version: 0.97\nTag-File-Character-Encoding: UTF-8\n")
    with pytest.raises(InvalidBagError):
        read_bag(tmp_path)


def test_bad_declaration(tmp_path):
    (tmp_path / "bagit.txt").write_text("BagIt-Version: soon\n")
    with pytest.raises(InvalidBagError):
        read_bag(tmp_path)


def test_malformed_manifest_line(bag_dir):
    with open(bag_dir / "manifest-md5.txt", "a") as fp:
        fp.write("this-is-not-a-checksum\n")
    with pytest.raises(InvalidBagError):
        read_bag(bag_dir)


def test_manifest_path_escaping_the_bag(bag_dir):
    with open(bag_dir / "manifest-md5.txt", "a") as fp:
        fp.write("5d41402abc4b2a76b9719d911017c592  data/../../outside.txt\n")
    with pytest.raises(InvalidBagError):
        read_bag(bag_dir)


def test_manifest_for_unknown_algorithm(bag_dir):
    (bag_dir / "manifest-crc32.txt").write_text("abcd1234  data/a.txt\n")
    with pytest.raises(UnsupportedAlgorithmError):
        read_bag(bag_dir)


def test_single_space_and_tab_separated_manifests_are_read(tmp_path):
    make_tree(tmp_path, {"data/a.txt": "hello"})
    (tmp_path / "bagit.txt").write_text("BagIt-Version: 0.97\nTag-File-Character-Encoding: UTF-8\n")
    (tmp_path / "manifest-md5.txt").write_text("5D41402ABC4B2A76B9719D911017C592 data/a.txt\r\n")
    (tmp_path / "manifest-sha1.txt").write_text("aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d\t./data/a.txt\n")

    bag = BagVerifier().verify(tmp_path)

    assert bag.payload_manifests[0].get("data/a.txt") == "5d41402abc4b2a76b9719d911017c592"
    assert bag.payload_manifests[1].get("data/a.txt") == "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"


@pytest.mark.skipif(os.name == "nt", reason="newlines are not allowed in Windows file names")
def test_file_names_with_newlines(tmp_path):
    make_tree(tmp_path, {"line\nbreak.txt": "hello"})

    BagCreator(["md5"]).bag_in_place(tmp_path)

    with open(tmp_path / "manifest-md5.txt") as fp:
        assert fp.read() == "5d41402abc4b2a76b9719d911017c592  data/line%0Abreak.txt\n"
    BagVerifier().verify(tmp_path)


def test_file_names_with_percent_signs(tmp_path):
    make_tree(tmp_path, {"a%0Ab.txt": "hello", "100%.txt": "hello"})

    BagCreator(["md5"]).bag_in_place(tmp_path)

    with open(tmp_path / "manifest-md5.txt") as fp:
        assert fp.read() == (
            "5d41402abc4b2a76b9719d911017c592  data/100%25.txt\n"
            "5d41402abc4b2a76b9719d911017c592  data/a%250Ab.txt\n"
        )
    bag = BagVerifier().verify(tmp_path)
    assert bag.payload_paths() == {"data/100%.txt", "data/a%0Ab.txt"}


def test_file_names_with_leading_spaces(tmp_path):
    make_tree(tmp_path, {" x": "hello", "sub/  y.txt": "hello"})

    BagCreator(["md5"]).create_dot_bagit(tmp_path)

    with open(tmp_path / ".bagit" / "manifest-md5.txt") as fp:
        assert fp.read() == (
            "5d41402abc4b2a76b9719d911017c592   x\n"
            "5d41402abc4b2a76b9719d911017c592  sub/  y.txt\n"
        )
    bag = BagVerifier().verify(tmp_path)
    assert bag.payload_paths() == {" x", "sub/  y.txt"}
