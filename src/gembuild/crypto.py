"""
Centralized cryptographic operations for gembuild.
"""

import datetime
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.x509.oid import NameOID

from .exceptions import KeyUnreadableError, MalformedCertificateError, SigningError

SigningKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey

DIGEST_SIZE = hashes.SHA256.digest_size


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()), salt_length=hashes.SHA256.digest_size
    )


def generate_keys(key_size: int = 4096) -> tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generates a new RSA key pair (4096-bit by default)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return private_key, private_key.public_key()


def create_certificate(
    subject_key: SigningKey,
    common_name: str,
    issuer_key: SigningKey | None = None,
    issuer_cert: x509.Certificate | None = None,
    days: int = 365,
    is_ca: bool = False,
    not_before: datetime.datetime | None = None,
) -> x509.Certificate:
    """Issues a certificate for ``subject_key``.

    Without an issuer the certificate is self-signed.
    """
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = issuer_cert.subject if issuer_cert is not None else subject
    signer = issuer_key if issuer_key is not None else subject_key
    start = not_before or datetime.datetime.now(datetime.timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(start)
        .not_valid_after(start + datetime.timedelta(days=days))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    algorithm = None if isinstance(signer, ed25519.Ed25519PrivateKey) else hashes.SHA256()
    return builder.sign(signer, algorithm)


def load_private_key(key_path: Path) -> SigningKey:
    """Loads an unencrypted PEM (or DER) private key for signing."""
    try:
        key_bytes = Path(key_path).read_bytes()
    except OSError as e:
        raise KeyUnreadableError(f"Unable to read signing key {key_path}: {e}") from e

    try:
        if b"-----BEGIN" in key_bytes:
            key = serialization.load_pem_private_key(key_bytes, password=None)
        else:
            key = serialization.load_der_private_key(key_bytes, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyUnreadableError(f"Unable to load signing key {key_path}: {e}") from e

    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
        raise KeyUnreadableError(
            f"Unsupported signing key type {type(key).__name__} in {key_path}"
        )
    return key


def load_certificate(source: x509.Certificate | Path | str | bytes) -> x509.Certificate:
    """Loads a certificate from an object, a path, or PEM/DER bytes."""
    if isinstance(source, x509.Certificate):
        return source
    if isinstance(source, bytes):
        data, origin = source, "certificate data"
    else:
        try:
            data, origin = Path(source).read_bytes(), str(source)
        except OSError as e:
            raise MalformedCertificateError(f"Unable to read certificate {source}: {e}") from e

    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise MalformedCertificateError(f"Malformed certificate in {origin}: {e}") from e


def certificate_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def fingerprint(certificate: x509.Certificate) -> str:
    """SHA-256 fingerprint of the DER encoding, as lowercase hex."""
    return certificate.fingerprint(hashes.SHA256()).hex()


def signature_algorithm_name(key: SigningKey) -> str:
    if isinstance(key, rsa.RSAPrivateKey):
        return "rsa-pss-sha256"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return "ecdsa-sha256"
    return "ed25519"


def sign_payload_hash(payload_hash: bytes, private_key: SigningKey) -> bytes:
    """Signs a 32-byte hash; RSA keys use RSA-PSS with SHA-256."""
    if not isinstance(payload_hash, bytes) or len(payload_hash) != DIGEST_SIZE:
        raise SigningError("Payload hash must be a 32-byte SHA-256 hash.")

    if isinstance(private_key, rsa.RSAPrivateKey):
        return private_key.sign(payload_hash, _pss(), hashes.SHA256())
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return private_key.sign(payload_hash, ec.ECDSA(hashes.SHA256()))
    return private_key.sign(payload_hash)


def verify_payload_hash(
    payload_hash: bytes, signature: bytes, certificate: x509.Certificate
) -> bool:
    """Checks ``signature`` over ``payload_hash`` with the certificate's key."""
    public_key = certificate.public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, payload_hash, _pss(), hashes.SHA256())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, payload_hash, ec.ECDSA(hashes.SHA256()))
        elif isinstance(public_key, ed25519.Ed25519PublicKey):
            public_key.verify(signature, payload_hash)
        else:
            return False
    except InvalidSignature:
        return False
    return True


def public_keys_match(private_key: SigningKey, certificate: x509.Certificate) -> bool:
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    return private_key.public_key().public_bytes(der, spki) == certificate.public_key().public_bytes(der, spki)


def is_issued_by(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    """True if ``issuer`` names and signed ``certificate``."""
    if certificate.issuer != issuer.subject:
        return False
    try:
        certificate.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def is_ca(certificate: x509.Certificate) -> bool:
    """True if ``certificate`` carries BasicConstraints with ``ca=True``."""
    try:
        constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints)
    except x509.ExtensionNotFound:
        return False
    return constraints.value.ca


def is_self_signed(certificate: x509.Certificate) -> bool:
    return is_issued_by(certificate, certificate)


def is_current(certificate: x509.Certificate, now: datetime.datetime | None = None) -> bool:
    moment = now or datetime.datetime.now(datetime.timezone.utc)
    return certificate.not_valid_before_utc <= moment <= certificate.not_valid_after_utc
