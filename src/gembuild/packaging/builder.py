"""Writes a validated specification and its files into a single archive."""

from collections.abc import Callable
import gzip
import hashlib
import json
import os
from pathlib import Path, PurePosixPath
import stat
import tarfile
import tempfile
from typing import BinaryIO

from pyvider.telemetry import logger

from ..exceptions import ArchiveExistsError, ArchiveWriteError, SourceNotFoundError
from ..models import ARCHIVE_EOF_MAGIC, ArchiveFooter, BuiltArchive, SignatureBlock
from ..specification import SigningRequest, Specification, Unsigned
from ..validator import ValidatedSpec
from .signer import sign_request

Signer = Callable[[bytes, SigningRequest], SignatureBlock]


class _HashingWriter:
    """File-like sink that feeds every written byte into a running digest."""

    def __init__(self, raw: BinaryIO, hasher: "hashlib._Hash") -> None:
        self._raw = raw
        self._hasher = hasher
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        self._raw.write(data)
        self._hasher.update(data)
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        self._raw.flush()


def canonical_metadata(spec: Specification) -> bytes:
    return json.dumps(spec.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")


def _tar_info(arcname: str, source: Path) -> tarfile.TarInfo:
    source_stat = source.stat()
    info = tarfile.TarInfo(arcname)
    info.size = source_stat.st_size
    info.mode = 0o755 if source_stat.st_mode & stat.S_IXUSR else 0o644
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


class ArchiveBuilder:
    def __init__(self, output_dir: Path | str, force: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.force = force

    def output_path(self, spec: Specification) -> Path:
        return self.output_dir / spec.file_name

    def _resolve_sources(self, spec: Specification) -> list[tuple[str, Path]]:
        sources = []
        for entry in spec.files:
            arcname = str(PurePosixPath(entry.replace("\\", "/")))
            source = spec.base_dir / entry
            if not source.is_file():
                raise SourceNotFoundError(source)
            sources.append((arcname, source))
        return sources

    def build(self, validated: ValidatedSpec, signer: Signer = sign_request) -> BuiltArchive:
        spec = validated.spec
        if not self.output_dir.is_dir():
            raise ArchiveWriteError(f"Output directory does not exist: {self.output_dir}")

        target = self.output_path(spec)
        if target.exists() and not self.force:
            raise ArchiveExistsError(target)

        sources = self._resolve_sources(spec)

        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{spec.file_name}.", suffix=".tmp", dir=self.output_dir
            )
        except OSError as e:
            raise ArchiveWriteError(f"Cannot create archive in {self.output_dir}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as raw:
                digest, footer = self._write_archive(raw, spec, sources, signer)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, target)
        except BaseException as e:
            tmp_path.unlink(missing_ok=True)
            if isinstance(e, OSError):
                raise ArchiveWriteError(f"Failed to write archive {target}: {e}") from e
            raise

        logger.info(
            f"Wrote archive {target.name}",
            digest=digest.hex(),
            signed=footer.signed,
            size=target.stat().st_size,
        )
        return BuiltArchive(path=target, digest=digest, signed=footer.signed)

    def _write_archive(
        self,
        raw: BinaryIO,
        spec: Specification,
        sources: list[tuple[str, Path]],
        signer: Signer,
    ) -> tuple[bytes, ArchiveFooter]:
        hasher = hashlib.sha256()
        writer = _HashingWriter(raw, hasher)

        with gzip.GzipFile(filename="", mode="wb", fileobj=writer, mtime=0) as gz:
            gz.write(canonical_metadata(spec))
        metadata_size = writer.bytes_written

        with gzip.GzipFile(filename="", mode="wb", fileobj=writer, mtime=0) as gz:
            with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
                for arcname, source in sources:
                    logger.debug("Adding file", name=arcname)
                    with source.open("rb") as f:
                        tar.addfile(_tar_info(arcname, source), f)
        data_size = writer.bytes_written - metadata_size

        digest = hasher.digest()
        signature_offset = signature_size = 0
        signing = spec.signing
        if isinstance(signing, SigningRequest):
            block_bytes = signer(digest, signing).to_bytes()
            signature_offset = metadata_size + data_size
            signature_size = len(block_bytes)
            raw.write(block_bytes)
        elif not isinstance(signing, Unsigned):
            raise TypeError(f"Unknown signing material: {signing!r}")

        footer = ArchiveFooter(
            metadata_offset=0,
            metadata_size=metadata_size,
            data_offset=metadata_size,
            data_size=data_size,
            signature_offset=signature_offset,
            signature_size=signature_size,
        )
        raw.write(footer.pack())
        raw.write(ARCHIVE_EOF_MAGIC)
        return digest, footer
