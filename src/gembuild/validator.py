"""Structural and semantic checks on a Specification before any archive work."""

import datetime
from pathlib import PurePosixPath
import re

from attrs import define, field

from .exceptions import InvalidDateFormatError, InvalidFieldError, MissingFieldError
from .models import EMPTY_LICENSE_WARNING
from .specification import Specification, Version

NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
# Fixed-width fields: "2010-11-8" is rejected although it is a real date.
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@define(frozen=True, slots=True)
class ValidatedSpec:
    spec: Specification
    version: Version
    date: datetime.date | None
    warnings: tuple[str, ...] = field(factory=tuple, converter=tuple)


def _check_name(spec: Specification) -> None:
    if not spec.name or not spec.name.strip():
        raise MissingFieldError("name")
    if not NAME_PATTERN.match(spec.name) or not re.search(r"[A-Za-z0-9]", spec.name):
        raise InvalidFieldError("name", spec.name, "must contain only letters, digits, '.', '-' and '_'")


def _check_version(spec: Specification) -> Version:
    if not spec.version or not spec.version.strip():
        raise MissingFieldError("version")
    try:
        return Version(spec.version)
    except ValueError as e:
        raise InvalidFieldError("version", spec.version, str(e)) from e


def parse_date(value: str | datetime.date | None) -> datetime.date | None:
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not DATE_PATTERN.match(value):
        raise InvalidDateFormatError(value)
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateFormatError(value) from e


def _check_files(spec: Specification) -> None:
    for entry in spec.files:
        path = PurePosixPath(entry.replace("\\", "/"))
        if not entry or path.is_absolute() or ".." in path.parts:
            raise InvalidFieldError("files", entry, "file entries must be relative paths inside the package")


def validate(spec: Specification) -> ValidatedSpec:
    """Checks ``spec`` and returns it with parsed fields and deferred warnings.

    The first failure is raised; nothing on disk is touched.
    """
    _check_name(spec)
    version = _check_version(spec)
    date = parse_date(spec.date)
    if not spec.summary or not spec.summary.strip():
        raise MissingFieldError("summary")
    _check_files(spec)

    warnings: list[str] = []
    if not spec.licenses:
        warnings.append(EMPTY_LICENSE_WARNING)

    return ValidatedSpec(spec=spec, version=version, date=date, warnings=warnings)
