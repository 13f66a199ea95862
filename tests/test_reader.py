"""Tests for the archive reader."""

from pathlib import Path

import pytest

from gembuild.exceptions import ArchiveUnreadableError, InvalidFooterError
from gembuild.models import ARCHIVE_EOF_MAGIC, ArchiveFooter
from gembuild.packaging.builder import ArchiveBuilder
from gembuild.packaging.reader import ArchiveReader
from gembuild.specification import Specification
from gembuild.validator import validate


def test_reader_file_not_found() -> None:
    with pytest.raises(ArchiveUnreadableError, match="Archive not found"):
        ArchiveReader(Path("/tmp/non-existent-gem-archive.gem"))


def test_reader_invalid_eof_magic(tmp_path: Path) -> None:
    bad_file = tmp_path / "bad.gem"
    bad_file.write_bytes(b"this is not a valid file, but it is long enough to hold a footer" * 2)
    with pytest.raises(InvalidFooterError, match="Invalid archive EOF Magic"):
        ArchiveReader(bad_file)


def test_reader_short_file(tmp_path: Path) -> None:
    short_file = tmp_path / "short.gem"
    short_file.write_bytes(b"tiny")
    with pytest.raises(InvalidFooterError, match="only 4 bytes"):
        ArchiveReader(short_file)


def test_reader_inconsistent_offsets(tmp_path: Path) -> None:
    footer = ArchiveFooter(metadata_offset=0, metadata_size=10, data_offset=10, data_size=500)
    bad_file = tmp_path / "offsets.gem"
    bad_file.write_bytes(b"x" * 30 + footer.pack() + ARCHIVE_EOF_MAGIC)
    with pytest.raises(InvalidFooterError, match="offsets are inconsistent"):
        ArchiveReader(bad_file)


def test_reader_round_trip(some_gem: Specification, output_dir: Path) -> None:
    built = ArchiveBuilder(output_dir).build(validate(some_gem))
    reader = ArchiveReader(built.path)

    spec = reader.spec
    assert spec.name == "some_gem"
    assert spec.version == "2"
    assert spec.summary == "this is a summary"
    assert spec.date == "2010-11-08"
    assert reader.file_names() == ["lib/code.rb"]
    assert reader.read_file("lib/code.rb") == b"puts 'hello'\n"
    assert reader.signature_block is None
    assert reader.compute_digest() == built.digest
    assert "Name: some_gem" in reader.get_info()

    with pytest.raises(KeyError, match="missing.rb"):
        reader.read_file("missing.rb")


def test_reader_corrupt_metadata(some_gem: Specification, output_dir: Path) -> None:
    built = ArchiveBuilder(output_dir).build(validate(some_gem))
    footer = ArchiveReader(built.path).footer
    content = bytearray(built.path.read_bytes())
    content[footer.metadata_offset + footer.metadata_size // 2] ^= 0xFF
    built.path.write_bytes(bytes(content))

    reader = ArchiveReader(built.path)
    with pytest.raises(ArchiveUnreadableError, match="metadata is unreadable"):
        reader.metadata
    with pytest.raises(ArchiveUnreadableError):
        reader.get_info()
