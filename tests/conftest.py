"""
Core configuration
"""

import hashlib
import json
import os

import pytest_asyncio
from asn1crypto import cms
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from ovgs.config.settings import Settings


@pytest_asyncio.fixture(scope="session")
def database_container(tmp_path_factory):
    if os.environ.get("OVGS_TEST_POSTGRES"):
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer() as container:
            yield {
                "database_type": "postgres",
                "database_user": container.username,
                "database_password": container.password,
                "database_port": container.get_exposed_port(container.port),
                "database_host": "localhost",
                "database_db": container.dbname,
                "database_echo": True,
            }
    else:
        yield {
            "database_type": "sqlite",
            "database_db": str(tmp_path_factory.mktemp("database") / "ovgs.db"),
        }


@pytest_asyncio.fixture(scope="session")
def server_settings(database_container):
    yield Settings(**database_container)


@pytest_asyncio.fixture(scope="session")
def database(server_settings: Settings):
    manager = server_settings.sync_manager()
    manager.create_all()
    yield
    manager.drop_all()


def open_signed_voucher(voucher_cms: bytes, certificate: x509.Certificate) -> dict:
    """
    Parse a CMS SignedData voucher, check that its signature was made by
    `certificate` over the encapsulated content, and return that content.

    Raises
    ------
    ValueError
        If the structure is not an attached SignedData voucher.
    InvalidSignature
        If the digest or the signature does not match.
    """
    content_info = cms.ContentInfo.load(voucher_cms)
    if content_info["content_type"].native != "signed_data":
        raise ValueError("Not a SignedData structure")

    signed_data = content_info["content"]
    encapsulated = signed_data["encap_content_info"]
    if encapsulated["content_type"].native != "data":
        raise ValueError("Unexpected encapsulated content type")

    content = encapsulated["content"].native
    if not content:
        raise ValueError("Signature is detached")

    signer_infos = list(signed_data["signer_infos"])
    if len(signer_infos) != 1:
        raise ValueError("Expected exactly one signer")
    signer_info = signer_infos[0]

    signed_attrs = signer_info["signed_attrs"]
    digests = [
        attribute["values"][0].native
        for attribute in signed_attrs
        if attribute["type"].native == "message_digest"
    ]
    if digests != [hashlib.sha256(content).digest()]:
        raise InvalidSignature("Message digest does not match the content")

    # The signature covers the attributes encoded as a SET OF, not as [0].
    certificate.public_key().verify(
        signer_info["signature"].native,
        b"\x31" + signed_attrs.dump()[1:],
        ec.ECDSA(hashes.SHA256()),
    )

    return json.loads(content)


@pytest_asyncio.fixture(scope="session")
def open_voucher():
    yield open_signed_voucher
