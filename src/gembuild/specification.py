"""
In-memory model of a gem specification.

The specification is produced by the loader (or built directly by callers),
consumed read-only by the validator and the archive builder, and embedded in
every archive as canonical JSON.
"""

import datetime
import functools
import re
from pathlib import Path
from typing import Any, Self

from attrs import define, field

VERSION_PATTERN = re.compile(
    r"^[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)
_SEGMENT_PATTERN = re.compile(r"[0-9]+|[a-zA-Z]+")


@functools.total_ordering
@define(frozen=True, slots=True, eq=False)
class Version:
    """An ordered version token such as ``2``, ``1.0.3`` or ``1.0.0.pre1``.

    Numeric segments compare numerically, alphabetic segments mark a
    prerelease and sort before any numeric segment in the same position.
    Trailing zeros are insignificant, so ``1.0 == 1``.
    """

    text: str
    segments: tuple[int | str, ...] = field(init=False)

    def __attrs_post_init__(self) -> None:
        stripped = self.text.strip()
        if not VERSION_PATTERN.match(stripped):
            raise ValueError(f"Malformed version number string {self.text!r}")
        normalized = stripped.replace("-", ".pre.")
        segments: list[int | str] = []
        for part in _SEGMENT_PATTERN.findall(normalized):
            segments.append(int(part) if part.isdigit() else part)
        object.__setattr__(self, "text", stripped)
        object.__setattr__(self, "segments", tuple(segments))

    @property
    def prerelease(self) -> bool:
        return any(isinstance(s, str) for s in self.segments)

    def _canonical(self) -> tuple[int | str, ...]:
        segments = list(self.segments)
        while segments and segments[-1] == 0:
            segments.pop()
        return tuple(segments)

    def _compare(self, other: "Version") -> int:
        lhs, rhs = self._canonical(), other._canonical()
        for index in range(max(len(lhs), len(rhs))):
            left = lhs[index] if index < len(lhs) else 0
            right = rhs[index] if index < len(rhs) else 0
            if left == right:
                continue
            if isinstance(left, str) and isinstance(right, int):
                return -1
            if isinstance(left, int) and isinstance(right, str):
                return 1
            return -1 if left < right else 1  # type: ignore[operator]
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical())

    def __str__(self) -> str:
        return self.text


@define(frozen=True, slots=True)
class Unsigned:
    """Marker for a specification that carries no signing material."""


@define(frozen=True, slots=True)
class SigningRequest:
    key_path: Path
    cert_chain: tuple[Path, ...] = field(factory=tuple, converter=tuple)


SigningMaterial = Unsigned | SigningRequest


def _to_str_tuple(values: Any) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in values)


def _version_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


@define(frozen=True, slots=True)
class Specification:
    name: str
    version: str = field(converter=_version_text)
    summary: str | None = None
    date: str | datetime.date | None = None
    licenses: tuple[str, ...] = field(factory=tuple, converter=_to_str_tuple)
    files: tuple[str, ...] = field(factory=tuple, converter=_to_str_tuple)
    authors: tuple[str, ...] = field(factory=tuple, converter=_to_str_tuple)
    description: str | None = None
    homepage: str | None = None
    signing: SigningMaterial = field(factory=Unsigned)
    base_dir: Path = field(factory=Path.cwd, converter=Path, eq=False)

    @property
    def full_name(self) -> str:
        return f"{self.name}-{self.version}"

    @property
    def file_name(self) -> str:
        return f"{self.full_name}.gem"

    @property
    def is_signed(self) -> bool:
        return isinstance(self.signing, SigningRequest)

    def date_literal(self) -> str | None:
        if self.date is None:
            return None
        if isinstance(self.date, datetime.date):
            return self.date.isoformat()
        return self.date

    def to_dict(self) -> dict[str, Any]:
        """Serializable form embedded in the archive metadata section.

        Signing key paths and the base directory are build-host details and
        are never embedded.
        """
        return {
            "name": self.name,
            "version": self.version,
            "summary": self.summary,
            "date": self.date_literal(),
            "licenses": list(self.licenses),
            "files": list(self.files),
            "authors": list(self.authors),
            "description": self.description,
            "homepage": self.homepage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> Self:
        return cls(
            name=data.get("name", ""),
            version=data.get("version"),
            summary=data.get("summary"),
            date=data.get("date"),
            licenses=data.get("licenses"),
            files=data.get("files"),
            authors=data.get("authors"),
            description=data.get("description"),
            homepage=data.get("homepage"),
            base_dir=base_dir or Path.cwd(),
        )
