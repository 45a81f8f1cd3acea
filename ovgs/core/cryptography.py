"""
Cryptography primitives
"""

import hashlib
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_der_public_key,
    load_pem_private_key,
)
from cryptography.x509.oid import NameOID


class EncryptionSerializationError(Exception):
    pass


def generate_signing_material(
    common_name: str, validity: timedelta, key_password: str | None
) -> tuple[bytes, bytes]:
    """
    Generate a key pair and a self-signed certificate suitable for signing
    vouchers. Production deployments will normally be handed a certificate
    chained to the vendor's CA instead.

    Parameters
    ----------
    common_name
        Subject (and issuer) common name of the certificate.
    validity
        How long the certificate is valid from now.
    key_password
        The password to encrypt the private key with; None leaves it
        unencrypted.

    Returns
    -------
    certificate: bytes
        The certificate, serialized to PEM.
    private_key: bytes
        The private key, serialized to (possibly encrypted) PEM.
    """
    private = ec.generate_private_key(ec.SECP256R1())

    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + validity)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(private, hashes.SHA256())
    )

    if key_password:
        encryption = BestAvailableEncryption(password=key_password.encode("utf-8"))
    else:
        encryption = NoEncryption()

    private_key = private.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )

    return certificate.public_bytes(Encoding.PEM), private_key


def deserialize_private_key(private_key: bytes, key_password: str | None):
    try:
        return load_pem_private_key(
            data=private_key,
            password=key_password.encode("utf-8") if key_password else None,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm):
        raise EncryptionSerializationError("Unable to reconstruct private key")


def deserialize_certificate(certificate: bytes) -> x509.Certificate:
    """
    Load a certificate that may be either PEM or DER encoded.
    """
    try:
        if certificate.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(certificate)
        return x509.load_der_x509_certificate(certificate)
    except ValueError:
        raise EncryptionSerializationError("Unable to reconstruct certificate")


def deserialize_public_key(public_key_der: bytes):
    try:
        return load_der_public_key(data=public_key_der)
    except (ValueError, UnsupportedAlgorithm):
        raise EncryptionSerializationError("Unable to reconstruct public key")


def serialize_public_key(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=Encoding.DER, format=PublicFormat.SubjectPublicKeyInfo
    )


def fingerprint(certificate_der: bytes) -> str:
    """
    SHA-256 fingerprint of a DER certificate, used to spot duplicates.
    """
    return hashlib.sha256(certificate_der).hexdigest()
