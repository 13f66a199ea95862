"""
Durable, fingerprint-keyed store of trusted signer certificates.

Each certificate lives in ``<fingerprint>.pem`` inside the store directory.
Writers hold an exclusive ``fcntl`` lock on a ``.lock`` sidecar and publish
files with ``os.replace``; readers hold a shared lock.
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import fcntl
import os
from pathlib import Path
import tempfile
from typing import Self

from cryptography import x509
from pyvider.telemetry import logger

from .config import default_trust_dir
from .crypto import certificate_pem, fingerprint, is_issued_by, load_certificate

LOCK_FILE_NAME = ".lock"


class TrustStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def open(cls, path: Path | str | None = None) -> Self:
        """Loads the store at ``path``, creating the directory if needed."""
        store_path = Path(path) if path is not None else default_trust_dir()
        store_path.mkdir(mode=0o700, parents=True, exist_ok=True)
        return cls(store_path)

    @contextmanager
    def _locked(self, exclusive: bool) -> Iterator[None]:
        lock_path = self.path / LOCK_FILE_NAME
        with lock_path.open("a+") as lock_handle:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            try:
                yield
            finally:
                fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)

    def _cert_path(self, cert_fingerprint: str) -> Path:
        return self.path / f"{cert_fingerprint}.pem"

    def trust(self, certificate: x509.Certificate | Path | str | bytes) -> None:
        """Adds ``certificate``; trusting an already trusted one is a no-op."""
        cert = load_certificate(certificate)
        cert_fingerprint = fingerprint(cert)
        target = self._cert_path(cert_fingerprint)

        with self._locked(exclusive=True):
            if target.exists():
                logger.debug("Certificate already trusted", fingerprint=cert_fingerprint)
                return

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{cert_fingerprint}.", suffix=".tmp", dir=self.path
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(certificate_pem(cert))
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        logger.info(
            f"Trusted certificate {cert.subject.rfc4514_string()}",
            fingerprint=cert_fingerprint,
        )

    def __contains__(self, item: object) -> bool:
        if isinstance(item, x509.Certificate):
            item = fingerprint(item)
        if not isinstance(item, str):
            return False
        with self._locked(exclusive=False):
            return self._cert_path(item).is_file()

    def is_trusted(
        self,
        certificate: x509.Certificate,
        chain: Sequence[x509.Certificate] = (),
    ) -> bool:
        """True if ``certificate`` or an issuer reached through ``chain`` is trusted.

        ``chain`` lists the issuers above ``certificate``, nearest first. The
        walk stops at the first link whose issuer does not match and sign.
        """
        links = list(chain)
        if links and links[0] == certificate:
            links = links[1:]
        links.insert(0, certificate)

        with self._locked(exclusive=False):
            for index, link in enumerate(links):
                if self._cert_path(fingerprint(link)).is_file():
                    return True
                if index + 1 < len(links) and not is_issued_by(link, links[index + 1]):
                    return False
        return False

    def fingerprints(self) -> list[str]:
        with self._locked(exclusive=False):
            return sorted(p.stem for p in self.path.glob("*.pem"))

    def load(self, cert_fingerprint: str) -> x509.Certificate | None:
        cert_path = self._cert_path(cert_fingerprint)
        with self._locked(exclusive=False):
            if not cert_path.is_file():
                return None
            return load_certificate(cert_path)

    def certificates(self) -> list[x509.Certificate]:
        return [
            cert
            for cert in (self.load(fp) for fp in self.fingerprints())
            if cert is not None
        ]
