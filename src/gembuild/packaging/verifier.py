"""Policy-driven verification of signed gem archives."""

import datetime
from pathlib import Path

from cryptography import x509
from pyvider.telemetry import logger

from ..crypto import is_ca, is_current, is_issued_by, is_self_signed, load_certificate, verify_payload_hash
from ..exceptions import (
    ArchiveUnreadableError,
    MalformedCertificateError,
    SignatureMissingError,
    VerificationError,
)
from ..models import DIGEST_ALGORITHM
from ..policy import SecurityPolicy
from ..trust import TrustStore
from .reader import ArchiveReader


class Verifier:
    def __init__(
        self,
        trust_store: TrustStore | None = None,
        now: datetime.datetime | None = None,
    ) -> None:
        self.trust_store = trust_store
        self.now = now

    def _chain_is_valid(self, chain: list[x509.Certificate]) -> bool:
        moment = self.now or datetime.datetime.now(datetime.timezone.utc)
        for index, cert in enumerate(chain):
            if not is_current(cert, moment):
                logger.warning(
                    "Certificate outside its validity period",
                    subject=cert.subject.rfc4514_string(),
                )
                return False
            if index + 1 < len(chain) and not is_issued_by(cert, chain[index + 1]):
                logger.warning(
                    "Certificate chain is broken",
                    subject=cert.subject.rfc4514_string(),
                    expected_issuer=chain[index + 1].subject.rfc4514_string(),
                )
                return False
            if index + 1 < len(chain) and not is_ca(chain[index + 1]):
                logger.warning(
                    "Issuing certificate is not a CA",
                    subject=chain[index + 1].subject.rfc4514_string(),
                )
                return False
        return True

    def verify(self, archive: ArchiveReader | Path | str, policy: SecurityPolicy) -> bool:
        """Checks ``archive`` under ``policy``.

        Returns False when the archive is well formed but its signature is
        invalid or untrusted. Raises VerificationError subclasses only for
        structural problems.
        """
        reader = archive if isinstance(archive, ArchiveReader) else ArchiveReader(Path(archive))
        name = reader.package_path.name

        block = reader.signature_block
        if block is None:
            if policy.only_signed:
                raise SignatureMissingError(f"Unsigned archive {name} rejected by {policy.name} policy")
            logger.info(f"{name} is unsigned; accepted by {policy.name} policy")
            return True

        if block.digest_algorithm != DIGEST_ALGORITHM:
            raise ArchiveUnreadableError(
                f"Unsupported digest algorithm {block.digest_algorithm!r} in {name}"
            )
        chain = [load_certificate(pem) for pem in block.cert_chain_pem]
        if not chain:
            raise MalformedCertificateError(f"Signature block of {name} carries no certificate")
        leaf = chain[0]

        if policy.verify_data or policy.verify_signer:
            digest = reader.compute_digest()
            if not verify_payload_hash(digest, block.signature, leaf):
                logger.warning(f"Signature of {name} does not match its payload")
                return False

        if policy.verify_signer and not is_current(leaf, self.now):
            logger.warning(f"Signing certificate of {name} is not currently valid")
            return False

        if policy.verify_chain and not self._chain_is_valid(chain):
            return False

        if policy.verify_root and not is_self_signed(chain[-1]):
            logger.warning(f"Root certificate of {name} is not self-signed")
            return False

        if policy.only_trusted:
            if self.trust_store is None:
                raise VerificationError(f"The {policy.name} policy requires a trust store")
            if not self.trust_store.is_trusted(leaf, chain[1:]):
                logger.warning(
                    f"{name} is signed by an untrusted certificate",
                    subject=chain[-1].subject.rfc4514_string(),
                )
                return False

        logger.info(f"Verified {name} under {policy.name} policy")
        return True


def verify(
    archive: ArchiveReader | Path | str,
    policy: SecurityPolicy,
    trust_store: TrustStore | None = None,
) -> bool:
    return Verifier(trust_store).verify(archive, policy)
