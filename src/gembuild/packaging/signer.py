"""Produces the signature block embedded in a signed archive."""

from collections.abc import Sequence
from pathlib import Path

from cryptography import x509
from pyvider.telemetry import logger

from ..crypto import (
    certificate_pem,
    load_certificate,
    load_private_key,
    public_keys_match,
    sign_payload_hash,
    signature_algorithm_name,
)
from ..exceptions import EmptyCertChainError, SigningError
from ..models import SignatureBlock
from ..specification import SigningRequest


def sign(
    digest: bytes,
    key_path: Path,
    cert_chain: Sequence[x509.Certificate | Path | str | bytes],
) -> SignatureBlock:
    """Signs ``digest`` with the key at ``key_path``.

    The full chain (leaf first) is embedded so a verifier only needs the
    trust root.
    """
    private_key = load_private_key(key_path)
    if not cert_chain:
        raise EmptyCertChainError(
            f"Signing key {key_path} was given without any certificate in cert_chain"
        )

    certificates = [load_certificate(cert) for cert in cert_chain]
    if not public_keys_match(private_key, certificates[0]):
        raise SigningError(
            f"Signing key {key_path} does not match the leaf certificate "
            f"{certificates[0].subject.rfc4514_string()}"
        )

    signature = sign_payload_hash(digest, private_key)
    logger.debug(
        "Signed payload digest",
        digest=digest.hex(),
        signer=certificates[0].subject.rfc4514_string(),
        chain_length=len(certificates),
    )
    return SignatureBlock(
        signature_algorithm=signature_algorithm_name(private_key),
        signature=signature,
        cert_chain_pem=tuple(certificate_pem(cert) for cert in certificates),
    )


def sign_request(digest: bytes, request: SigningRequest) -> SignatureBlock:
    return sign(digest, request.key_path, request.cert_chain)
