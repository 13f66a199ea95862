"""Loads a gemspec source file (TOML) into a Specification."""

import datetime
from pathlib import Path
import tomllib
from typing import Any

from pyvider.telemetry import logger

from .config import GEMSPEC_SUFFIX
from .exceptions import SourceNotFoundError, SpecLoadError
from .specification import SigningRequest, Specification, Unsigned

_KNOWN_KEYS = {
    "name",
    "version",
    "summary",
    "date",
    "licenses",
    "license",
    "files",
    "authors",
    "description",
    "homepage",
    "signing_key",
    "cert_chain",
}


def find_gemspec(path: str | Path) -> Path:
    """Resolves ``path`` or ``path.gemspec``, whichever exists."""
    candidate = Path(path)
    if candidate.is_file():
        return candidate
    if not candidate.name:
        raise SourceNotFoundError(path, f"Gemspec file not found: {path}")
    suffixed = candidate.with_name(candidate.name + GEMSPEC_SUFFIX)
    if suffixed.is_file():
        return suffixed
    raise SourceNotFoundError(path, f"Gemspec file not found: {path}")


def _expect(data: dict[str, Any], key: str, kinds: tuple[type, ...]) -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, kinds):
        raise SpecLoadError(
            f"Attribute {key!r} has unexpected type {type(value).__name__}"
        )
    return value


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = _expect(data, key, (list, str))
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not all(isinstance(item, str) for item in value):
        raise SpecLoadError(f"Attribute {key!r} must be a list of strings")
    return value


def spec_from_mapping(data: dict[str, Any], base_dir: Path) -> Specification:
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        logger.warning("Ignoring unknown gemspec attributes", attributes=unknown)

    version = _expect(data, "version", (str, int, float))
    # Native TOML dates stay date objects; quoted dates stay literals for validation.
    date = _expect(data, "date", (str, datetime.date))

    licenses = _string_list(data, "licenses") or _string_list(data, "license")

    signing_key = _expect(data, "signing_key", (str,))
    cert_chain = _string_list(data, "cert_chain")
    if signing_key:
        signing: SigningRequest | Unsigned = SigningRequest(
            key_path=base_dir / signing_key,
            cert_chain=tuple(base_dir / cert for cert in cert_chain),
        )
    else:
        if cert_chain:
            logger.warning("cert_chain given without signing_key; building unsigned")
        signing = Unsigned()

    return Specification(
        name=_expect(data, "name", (str,)) or "",
        version=version,
        summary=_expect(data, "summary", (str,)),
        date=date,
        licenses=licenses,
        files=_string_list(data, "files"),
        authors=_string_list(data, "authors"),
        description=_expect(data, "description", (str,)),
        homepage=_expect(data, "homepage", (str,)),
        signing=signing,
        base_dir=base_dir,
    )


def load_spec(path: str | Path) -> Specification:
    """Reads and parses a gemspec file.

    Raises SourceNotFoundError when neither ``path`` nor ``path.gemspec``
    exists, and SpecLoadError when the file is not a readable gemspec.
    """
    gemspec_path = find_gemspec(path)
    logger.debug("Loading gemspec", path=str(gemspec_path))
    try:
        with gemspec_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise SpecLoadError(f"Invalid gemspec {gemspec_path}: {e}") from e
    except OSError as e:
        raise SpecLoadError(f"Unable to read gemspec {gemspec_path}: {e}") from e

    return spec_from_mapping(data, gemspec_path.parent.resolve())
