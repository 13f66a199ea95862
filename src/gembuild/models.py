import base64
import json
import struct
import zlib
from pathlib import Path
from typing import Self

from attrs import define, field

from .exceptions import ArchiveUnreadableError

# Canonical gem archive format constants
ARCHIVE_FORMAT_VERSION_NUMBER: int = 0x0001
ARCHIVE_RESERVED_FIELD: int = 0x0000
ARCHIVE_INTERNAL_FOOTER_MAGIC_NUMBER: int = 0x304D4547  # 'GEM0'
ARCHIVE_EOF_MAGIC_STRING: bytes = b"!GEMPKG\x00"
ARCHIVE_EXTENSION: str = "gem"

# Format for 6 uint64, 2 uint16, 2 uint32
FOOTER_STRUCT_FORMAT = "<QQQQQQHHII"
FOOTER_SIZE = struct.calcsize(FOOTER_STRUCT_FORMAT)

if FOOTER_SIZE != 60:
    raise AssertionError(
        f"Calculated archive footer size is {FOOTER_SIZE}, expected 60."
    )

DIGEST_ALGORITHM = "sha256"
EMPTY_LICENSE_WARNING = "licenses is empty"


@define(frozen=True, slots=True)
class ArchiveFooter:
    metadata_offset: int
    metadata_size: int
    data_offset: int
    data_size: int
    signature_offset: int = 0
    signature_size: int = 0
    format_version: int = field(default=ARCHIVE_FORMAT_VERSION_NUMBER)
    reserved: int = field(default=ARCHIVE_RESERVED_FIELD)
    footer_struct_checksum: int = field(init=False)
    internal_footer_magic: int = field(default=ARCHIVE_INTERNAL_FOOTER_MAGIC_NUMBER)

    def __attrs_post_init__(self) -> None:
        calculated_checksum = zlib.crc32(self._pack_with_checksum(0)) & 0xFFFFFFFF
        object.__setattr__(self, "footer_struct_checksum", calculated_checksum)

    def _pack_with_checksum(self, checksum: int) -> bytes:
        return struct.pack(
            FOOTER_STRUCT_FORMAT,
            self.metadata_offset,
            self.metadata_size,
            self.data_offset,
            self.data_size,
            self.signature_offset,
            self.signature_size,
            self.format_version,
            self.reserved,
            checksum,
            self.internal_footer_magic,
        )

    @property
    def signed(self) -> bool:
        return self.signature_size > 0

    @property
    def payload_end(self) -> int:
        return self.data_offset + self.data_size

    @property
    def content_end(self) -> int:
        if self.signed:
            return self.signature_offset + self.signature_size
        return self.payload_end

    def pack(self) -> bytes:
        return self._pack_with_checksum(self.footer_struct_checksum)

    @classmethod
    def unpack(cls, buffer: bytes) -> Self:
        if len(buffer) != FOOTER_SIZE:
            raise ValueError(f"Buffer size {len(buffer)} != {FOOTER_SIZE}")

        unpacked = struct.unpack(FOOTER_STRUCT_FORMAT, buffer)

        footer_instance = cls(
            metadata_offset=unpacked[0],
            metadata_size=unpacked[1],
            data_offset=unpacked[2],
            data_size=unpacked[3],
            signature_offset=unpacked[4],
            signature_size=unpacked[5],
            format_version=unpacked[6],
            reserved=unpacked[7],
            internal_footer_magic=unpacked[9],
        )

        read_checksum_from_buffer = unpacked[8]
        if footer_instance.footer_struct_checksum != read_checksum_from_buffer:
            raise ValueError("Footer checksum mismatch.")

        if footer_instance.internal_footer_magic != ARCHIVE_INTERNAL_FOOTER_MAGIC_NUMBER:
            raise ValueError("Invalid InternalFooterMagic.")
        if footer_instance.format_version != ARCHIVE_FORMAT_VERSION_NUMBER:
            raise ValueError("Unexpected archive format version.")

        return footer_instance


@define(frozen=True, slots=True)
class SignatureBlock:
    """Detached signature over the payload digest plus the signer's chain."""

    signature_algorithm: str
    signature: bytes
    cert_chain_pem: tuple[bytes, ...] = field(converter=tuple)
    digest_algorithm: str = DIGEST_ALGORITHM

    def to_bytes(self) -> bytes:
        document = {
            "cert_chain": [pem.decode("ascii") for pem in self.cert_chain_pem],
            "digest_algorithm": self.digest_algorithm,
            "signature": base64.b64encode(self.signature).decode("ascii"),
            "signature_algorithm": self.signature_algorithm,
        }
        return json.dumps(document, sort_keys=True, separators=(",", ":")).encode()

    @classmethod
    def from_bytes(cls, buffer: bytes) -> Self:
        try:
            document = json.loads(buffer.decode("utf-8"))
            return cls(
                signature_algorithm=document["signature_algorithm"],
                signature=base64.b64decode(document["signature"], validate=True),
                cert_chain_pem=tuple(
                    pem.encode("ascii") for pem in document["cert_chain"]
                ),
                digest_algorithm=document["digest_algorithm"],
            )
        except (UnicodeError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise ArchiveUnreadableError(f"Signature block is malformed: {e}") from e


@define(frozen=True, slots=True)
class BuiltArchive:
    path: Path
    digest: bytes
    signed: bool


@define(frozen=True, slots=True)
class BuildReport:
    success: bool
    name: str
    version: str
    output_path: str
    warnings: tuple[str, ...] = field(factory=tuple, converter=tuple)

    @property
    def file_name(self) -> str:
        return Path(self.output_path).name

    def render(self) -> list[str]:
        """Lines for the success channel; warnings are emitted separately."""
        return [
            "  Successfully built gem",
            f"  Name: {self.name}",
            f"  Version: {self.version}",
            f"  File: {self.file_name}",
        ]

    def render_warnings(self) -> list[str]:
        return [f"WARNING:  {warning}" for warning in self.warnings]


ARCHIVE_MAGIC_NUMBER = ARCHIVE_INTERNAL_FOOTER_MAGIC_NUMBER
ARCHIVE_EOF_MAGIC = ARCHIVE_EOF_MAGIC_STRING
ARCHIVE_FORMAT_VERSION = ARCHIVE_FORMAT_VERSION_NUMBER
