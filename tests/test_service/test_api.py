"""
Tests the HTTP surface: request decoding, base64 transport of DER blobs and the
mapping of service errors onto status codes.
"""

import base64
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ovgs.api import dependencies
from ovgs.api.app import app
from ovgs.core.user import AccountIdentity
from ovgs.core.voucher import VOUCHER_CONTAINER


def headers(identity: AccountIdentity) -> dict[str, str]:
    return {
        "X-Ovgs-Username": identity.username,
        "X-Ovgs-Account-Type": identity.account_type.value,
        "X-Ovgs-Org-Id": identity.org_id,
    }


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


@pytest_asyncio.fixture
async def client(session_manager, signer, logger):
    async def get_async_session():
        async with session_manager.session() as session:
            async with session.begin():
                yield session

    app.dependency_overrides[dependencies.get_async_session] = get_async_session
    app.dependency_overrides[dependencies.get_signer] = lambda: signer
    app.dependency_overrides[dependencies.logger] = lambda: logger

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://ovgs.test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.mark.asyncio(loop_scope="session")
async def test_voucher_over_http(
    client,
    signer,
    admin,
    make_account,
    make_serial,
    new_domain_certificate,
    ien,
    open_voucher,
):
    bob = await make_account("bob")
    serial_number, public_key_der = await make_serial()
    certificate_der = new_domain_certificate()

    response = await client.put(
        "/groups",
        json={"parent": admin.org_id, "description": "Resale"},
        headers=headers(admin),
    )
    assert response.status_code == 200
    group_id = response.json()["group_id"]

    response = await client.put(
        "/roles",
        json={
            "username": bob.username,
            "org_id": bob.org_id,
            "group_id": group_id,
            "user_role": "ASSIGNER",
        },
        headers=headers(admin),
    )
    assert response.status_code == 200

    response = await client.put(
        "/serials",
        json={"serial_number": serial_number, "group_id": group_id},
        headers=headers(admin),
    )
    assert response.status_code == 200

    response = await client.get(f"/serials/{serial_number}", headers=headers(bob))
    assert response.status_code == 200
    assert response.json() == {
        "public_key_der": b64(public_key_der),
        "group_ids": [group_id],
        "mac_addr": "00:1c:73:00:00:01",
    }

    response = await client.put(
        "/certificates",
        json={
            "group_id": group_id,
            "certificate_der": b64(certificate_der),
            "revocation_checks": True,
            "expiry_time": (
                datetime.now(timezone.utc) + timedelta(days=30)
            ).isoformat(),
        },
        headers=headers(bob),
    )
    assert response.status_code == 200
    cert_id = response.json()["cert_id"]

    response = await client.get(f"/certificates/{cert_id}", headers=headers(bob))
    assert response.status_code == 200
    content = response.json()
    assert content["group_id"] == group_id
    assert content["certificate_der"] == b64(certificate_der)
    assert content["revocation_checks"] is True

    response = await client.get(f"/groups/{group_id}", headers=headers(admin))
    assert response.status_code == 200
    content = response.json()
    assert content["cert_ids"] == [cert_id]
    assert content["serial_numbers"] == [serial_number]
    assert content["users"] == [
        {
            "username": "bob",
            "user_type": "USER",
            "org_id": admin.org_id,
            "user_role": "ASSIGNER",
        }
    ]

    response = await client.post(
        "/vouchers",
        json={
            "serial_number": serial_number,
            "cert_id": cert_id,
            "lifetime": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
            "ien": ien,
        },
        headers=headers(bob),
    )
    assert response.status_code == 200
    content = response.json()
    assert base64.b64decode(content["public_key_der"]) == public_key_der

    payload = open_voucher(
        base64.b64decode(content["voucher_cms"]), signer.certificate
    )
    assert payload[VOUCHER_CONTAINER]["serial-number"] == serial_number

    response = await client.get(
        "/roles",
        params={"username": "bob", "org_id": bob.org_id},
        headers=headers(admin),
    )
    assert response.status_code == 200
    assert response.json() == {"groups": {group_id: "ASSIGNER"}}

    # The group still holds a serial and a certificate.
    response = await client.delete(f"/groups/{group_id}", headers=headers(admin))
    assert response.status_code == 400
    assert response.json()["code"] == "FAILED_PRECONDITION"

    response = await client.delete(f"/certificates/{cert_id}", headers=headers(bob))
    assert response.status_code == 200

    response = await client.post(
        "/serials/remove",
        json={"serial_number": serial_number, "group_id": group_id},
        headers=headers(bob),
    )
    assert response.status_code == 200

    response = await client.post(
        "/roles/remove",
        json={"username": "bob", "org_id": bob.org_id, "group_id": group_id},
        headers=headers(admin),
    )
    assert response.status_code == 200

    response = await client.delete(f"/groups/{group_id}", headers=headers(admin))
    assert response.status_code == 200

    response = await client.get(f"/groups/{group_id}", headers=headers(admin))
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio(loop_scope="session")
async def test_error_status_codes(client, admin, make_account, make_serial, ien):
    bob = await make_account("bob")
    serial_number, _ = await make_serial()

    # No identity at all
    response = await client.get(f"/groups/{admin.org_id}")
    assert response.status_code == 401

    response = await client.get(f"/groups/{admin.org_id}", headers=headers(bob))
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"

    grant = {
        "username": "bob",
        "org_id": bob.org_id,
        "group_id": admin.org_id,
        "user_role": "REQUESTOR",
    }

    response = await client.put("/roles", json=grant, headers=headers(admin))
    assert response.status_code == 200

    response = await client.put("/roles", json=grant, headers=headers(admin))
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_EXISTS"

    response = await client.put(
        "/roles", json=grant | {"user_role": "SUPPORT"}, headers=headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"

    response = await client.put(
        "/roles", json=grant | {"username": "ghost"}, headers=headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "FAILED_PRECONDITION"

    response = await client.put(
        "/certificates",
        json={
            "group_id": admin.org_id,
            "certificate_der": b64(b"not a certificate"),
            "expiry_time": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        },
        headers=headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"

    # Timestamps without a timezone are rejected before reaching the service.
    response = await client.post(
        "/vouchers",
        json={
            "serial_number": serial_number,
            "cert_id": "anything",
            "lifetime": "2030-01-01T00:00:00",
            "ien": ien,
        },
        headers=headers(admin),
    )
    assert response.status_code == 422

    response = await client.post(
        "/vouchers",
        json={
            "serial_number": serial_number,
            "cert_id": "no-such-certificate",
            "lifetime": "2030-01-01T00:00:00Z",
            "ien": ien,
        },
        headers=headers(admin),
    )
    assert response.status_code == 404

    response = await client.get(
        "/roles",
        params={"username": "ghost", "org_id": admin.org_id},
        headers=headers(admin),
    )
    assert response.status_code == 404
