"""Pytest fixtures for the entire gembuild test suite."""

from pathlib import Path
from typing import Callable

import attrs
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
import pytest

from gembuild.crypto import certificate_pem, create_certificate, generate_keys
from gembuild.specification import SigningRequest, Specification
from gembuild.trust import TrustStore

GEMSPEC_TEMPLATE = """\
name = "some_gem"
version = "2"
summary = "this is a summary"
date = "{date}"
licenses = []
files = ["lib/code.rb"]
"""


def write_private_key(path: Path, key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey) -> Path:
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


def write_certificate(path: Path, certificate: x509.Certificate) -> Path:
    path.write_bytes(certificate_pem(certificate))
    return path


@pytest.fixture(scope="session")
def key_pair() -> tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generates a single RSA key pair for the entire test session."""
    return generate_keys(key_size=2048)


@pytest.fixture(scope="session")
def private_key(key_pair: tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> rsa.RSAPrivateKey:
    return key_pair[0]


@pytest.fixture(scope="session")
def certificate(private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """A self-signed certificate for the session key."""
    return create_certificate(private_key, "some_gem signer")


@pytest.fixture(scope="session")
def signing_files(
    tmp_path_factory: pytest.TempPathFactory,
    private_key: rsa.RSAPrivateKey,
    certificate: x509.Certificate,
) -> tuple[Path, Path]:
    """Writes the session key and certificate to disk as PEM files."""
    keys_dir = tmp_path_factory.mktemp("keys")
    return (
        write_private_key(keys_dir / "private.pem", private_key),
        write_certificate(keys_dir / "public.pem", certificate),
    )


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """A source tree with the one file the sample specification lists."""
    source_dir = tmp_path / "src"
    (source_dir / "lib").mkdir(parents=True)
    (source_dir / "lib" / "code.rb").write_text("puts 'hello'\n")
    return source_dir


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def some_gem(package_dir: Path) -> Specification:
    return Specification(
        name="some_gem",
        version=2,
        summary="this is a summary",
        date="2010-11-08",
        licenses=[],
        files=["lib/code.rb"],
        base_dir=package_dir,
    )


@pytest.fixture
def signed_gem(some_gem: Specification, signing_files: tuple[Path, Path]) -> Specification:
    key_path, cert_path = signing_files
    return attrs.evolve(some_gem, signing=SigningRequest(key_path, (cert_path,)))


@pytest.fixture
def trust_store(tmp_path: Path) -> TrustStore:
    return TrustStore.open(tmp_path / "trust")


@pytest.fixture
def write_gemspec(package_dir: Path) -> Callable[..., Path]:
    """Factory writing a TOML gemspec into the package directory."""

    def _write(file_name: str = "some_gem-2.gemspec", date: str = "2010-11-08", extra: str = "") -> Path:
        path = package_dir / file_name
        path.write_text(GEMSPEC_TEMPLATE.format(date=date) + extra)
        return path

    return _write


@pytest.fixture
def key_material(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Factory writing a private key and its certificate as PEM files."""

    def _write(
        stem: str,
        key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
        cert: x509.Certificate,
    ) -> tuple[Path, Path]:
        material_dir = tmp_path / "material"
        material_dir.mkdir(exist_ok=True)
        return (
            write_private_key(material_dir / f"{stem}.key", key),
            write_certificate(material_dir / f"{stem}.crt", cert),
        )

    return _write
