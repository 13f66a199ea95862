"""Python-based reader for gem archives."""

from collections.abc import Iterator
import gzip
import hashlib
import io
import json
from pathlib import Path
import tarfile
from typing import Any
import zlib

from ..exceptions import ArchiveUnreadableError, InvalidFooterError
from ..models import ARCHIVE_EOF_MAGIC, FOOTER_SIZE, ArchiveFooter, SignatureBlock
from ..specification import Specification

_CHUNK_SIZE = 64 * 1024
_DECODE_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)


def _unreadable_data(error: BaseException) -> ArchiveUnreadableError:
    return ArchiveUnreadableError(f"Archive data section is unreadable: {error}")


class ArchiveReader:
    """Reads and interprets a gem archive: footer, metadata, files, signature."""

    def __init__(self, package_path: Path | str) -> None:
        package_path = Path(package_path)
        if not package_path.is_file():
            raise ArchiveUnreadableError(f"Archive not found at: {package_path}")
        self.package_path = package_path
        try:
            self.size = package_path.stat().st_size
            self.footer = self._read_and_verify_footer()
        except OSError as e:
            raise ArchiveUnreadableError(f"Cannot read archive {package_path}: {e}") from e
        self._metadata: dict[str, Any] | None = None

    def _read_and_verify_footer(self) -> ArchiveFooter:
        """Reads and validates the footer from the end of the file."""
        trailer_size = FOOTER_SIZE + len(ARCHIVE_EOF_MAGIC)
        if self.size < trailer_size:
            raise InvalidFooterError(
                f"Invalid archive EOF Magic. File is only {self.size} bytes."
            )

        with self.package_path.open("rb") as f:
            f.seek(-len(ARCHIVE_EOF_MAGIC), 2)
            eof_magic_bytes = f.read(len(ARCHIVE_EOF_MAGIC))
            if eof_magic_bytes != ARCHIVE_EOF_MAGIC:
                raise InvalidFooterError(
                    f"Invalid archive EOF Magic. Found {eof_magic_bytes!r}."
                )

            f.seek(-trailer_size, 2)
            footer_bytes = f.read(FOOTER_SIZE)

        try:
            footer = ArchiveFooter.unpack(footer_bytes)
        except ValueError as e:
            raise InvalidFooterError(f"Archive footer validation failed: {e}") from e

        consistent = (
            footer.metadata_offset == 0
            and footer.data_offset == footer.metadata_size
            and (not footer.signed or footer.signature_offset == footer.payload_end)
            and footer.content_end == self.size - trailer_size
        )
        if not consistent:
            raise InvalidFooterError("Archive section offsets are inconsistent.")
        return footer

    def read_section(self, offset: int, size: int) -> bytes:
        with self.package_path.open("rb") as f:
            f.seek(offset)
            data = f.read(size)
        if len(data) != size:
            raise ArchiveUnreadableError(
                f"Truncated archive section at offset {offset} ({len(data)} of {size} bytes)"
            )
        return data

    def iter_payload(self, chunk_size: int = _CHUNK_SIZE) -> Iterator[bytes]:
        """Yields the metadata and data sections, the bytes the digest covers."""
        remaining = self.footer.payload_end
        with self.package_path.open("rb") as f:
            while remaining > 0:
                chunk = f.read(min(chunk_size, remaining))
                if not chunk:
                    raise ArchiveUnreadableError("Archive payload is truncated")
                remaining -= len(chunk)
                yield chunk

    def compute_digest(self) -> bytes:
        hasher = hashlib.sha256()
        for chunk in self.iter_payload():
            hasher.update(chunk)
        return hasher.digest()

    @property
    def metadata(self) -> dict[str, Any]:
        if self._metadata is None:
            section = self.read_section(
                self.footer.metadata_offset, self.footer.metadata_size
            )
            try:
                self._metadata = json.loads(gzip.decompress(section).decode("utf-8"))
            except (OSError, EOFError, UnicodeError, ValueError, zlib.error) as e:
                raise ArchiveUnreadableError(f"Archive metadata is unreadable: {e}") from e
            if not isinstance(self._metadata, dict):
                raise ArchiveUnreadableError("Archive metadata is not a mapping")
        return self._metadata

    @property
    def spec(self) -> Specification:
        return Specification.from_dict(self.metadata, base_dir=self.package_path.parent)

    def _open_data(self) -> tarfile.TarFile:
        section = self.read_section(self.footer.data_offset, self.footer.data_size)
        try:
            return tarfile.open(fileobj=io.BytesIO(section), mode="r:gz")
        except _DECODE_ERRORS as e:
            raise _unreadable_data(e) from e

    def file_names(self) -> list[str]:
        with self._open_data() as tar:
            try:
                return tar.getnames()
            except _DECODE_ERRORS as e:
                raise _unreadable_data(e) from e

    def read_file(self, name: str) -> bytes:
        with self._open_data() as tar:
            try:
                member = tar.getmember(name)
            except KeyError as e:
                raise KeyError(f"{name} is not in {self.package_path.name}") from e
            except _DECODE_ERRORS as e:
                raise _unreadable_data(e) from e
            extracted = tar.extractfile(member)
            if extracted is None:
                raise ArchiveUnreadableError(f"{name} is not a regular file")
            try:
                return extracted.read()
            except _DECODE_ERRORS as e:
                raise _unreadable_data(e) from e

    @property
    def signature_block(self) -> SignatureBlock | None:
        if not self.footer.signed:
            return None
        return SignatureBlock.from_bytes(
            self.read_section(self.footer.signature_offset, self.footer.signature_size)
        )

    def get_info(self) -> str:
        """Returns a human-readable string of the archive information."""
        f = self.footer
        return (
            f"Gem Archive Information:\n"
            f"  Name: {self.metadata.get('name')}\n"
            f"  Version: {self.metadata.get('version')}\n"
            f"  Format Version: 0x{f.format_version:04x}\n"
            f"  Metadata Size: {f.metadata_size} bytes\n"
            f"  Data Size: {f.data_size} bytes\n"
            f"  Signature Size: {f.signature_size} bytes"
        )
