"""
Tools for building and signing RFC 8366 ownership vouchers.

A voucher is a JSON document (the `ietf-voucher:voucher` container) carried as
the content of a CMS SignedData structure (RFC 5652). Signing uses the
service's own voucher key; the domain certificate is pinned inside the
voucher so that the device will trust the new owner.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding, pkcs7

from .cryptography import (
    EncryptionSerializationError,
    deserialize_certificate,
    deserialize_private_key,
)

VOUCHER_CONTAINER = "ietf-voucher:voucher"


class VoucherSigningError(Exception):
    pass


def format_timestamp(timestamp: datetime) -> str:
    """
    RFC 3339 timestamps in UTC, as YANG's `date-and-time` expects. Fractional
    seconds are kept whenever the value has them.
    """
    return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_voucher_payload(
    serial_number: str,
    public_key_der: bytes,
    pinned_domain_cert: bytes,
    revocation_checks: bool,
    created_on: datetime,
    expires_on: datetime,
) -> dict[str, Any]:
    """
    Builds the voucher content.

    Parameters
    ----------
    serial_number
        The device serial number the voucher is issued for.
    public_key_der
        The device's DER encoded public key.
    pinned_domain_cert
        DER encoded domain certificate the device should trust.
    revocation_checks
        Whether the device must check revocation status of the domain
        certificate.
    created_on
        Issuance time.
    expires_on
        The end of the voucher's validity window.
    """
    return {
        VOUCHER_CONTAINER: {
            "created-on": format_timestamp(created_on),
            "expires-on": format_timestamp(expires_on),
            "assertion": "verified",
            "serial-number": serial_number,
            "pinned-domain-cert": base64.b64encode(pinned_domain_cert).decode(
                "ascii"
            ),
            "domain-cert-revocation-checks": revocation_checks,
            "device-public-key": base64.b64encode(public_key_der).decode("ascii"),
        }
    }


def serialize_payload(payload: dict[str, Any]) -> bytes:
    # Compact and key-ordered so that identical content serializes identically.
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


class VoucherSigner:
    """
    Holds the voucher signing certificate and key, decrypted once at startup.
    """

    certificate: x509.Certificate

    def __init__(
        self, certificate: bytes, private_key: bytes, key_password: str | None
    ):
        try:
            self.certificate = deserialize_certificate(certificate)
            self._key = deserialize_private_key(
                private_key=private_key, key_password=key_password
            )
        except EncryptionSerializationError as e:
            raise VoucherSigningError(f"Unable to load voucher signing material: {e}")

    def sign(self, payload: dict[str, Any]) -> bytes:
        """
        Encapsulate the payload in a DER encoded CMS SignedData structure.
        """
        try:
            return (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(serialize_payload(payload))
                .add_signer(self.certificate, self._key, hashes.SHA256())
                .sign(
                    Encoding.DER,
                    [pkcs7.PKCS7Options.Binary, pkcs7.PKCS7Options.NoCapabilities],
                )
            )
        except (TypeError, ValueError) as e:
            raise VoucherSigningError(f"Unable to sign voucher: {e}")
