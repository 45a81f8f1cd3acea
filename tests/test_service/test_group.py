"""
Tests the group service layer.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ovgs.core.roles import Role
from ovgs.service import authorization
from ovgs.service import certificates as certificates_service
from ovgs.service import groups as groups_service
from ovgs.service import roles as roles_service
from ovgs.service import serials as serials_service


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group(session_manager, logger, admin):
    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                parent_id=admin.org_id,
                description="Resellers",
                caller=admin,
                conn=conn,
                log=logger,
            )

            GROUP_ID = group.group_id

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.read(
                group_id=GROUP_ID, caller=admin, conn=conn, log=logger
            )

            assert group.parent_id == admin.org_id
            assert group.org_id == admin.org_id
            assert group.description == "Resellers"
            assert group.cert_ids == []
            assert group.serial_numbers == []
            assert group.child_group_ids == []
            assert group.users == []

    async with session_manager.session() as conn:
        async with conn.begin():
            root = await groups_service.read(
                group_id=admin.org_id, caller=admin, conn=conn, log=logger
            )

            assert root.parent_id is None
            assert root.child_group_ids == [GROUP_ID]
            assert len(root.users) == 1
            assert root.users[0].username == admin.username
            assert root.users[0].user_role == Role.ADMIN

    # Delete the group
    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=GROUP_ID, caller=admin, conn=conn, log=logger
            )

    # Try to read the group again
    async with session_manager.session() as conn:
        async with conn.begin():
            with pytest.raises(groups_service.GroupNotFound):
                await groups_service.read(
                    group_id=GROUP_ID, caller=admin, conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group_missing_parent(session_manager, logger, admin):
    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    parent_id="does-not-exist",
                    description="",
                    caller=admin,
                    conn=conn,
                    log=logger,
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group_requires_admin(
    session_manager, logger, admin, make_account
):
    bob = await make_account("bob")

    async with session_manager.session() as conn:
        async with conn.begin():
            await roles_service.add(
                target=bob,
                group_id=admin.org_id,
                role=Role.ASSIGNER,
                caller=admin,
                conn=conn,
                log=logger,
            )

    with pytest.raises(authorization.PermissionDenied):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    parent_id=admin.org_id,
                    description="",
                    caller=bob,
                    conn=conn,
                    log=logger,
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_requires_admin_on_parent(
    session_manager, logger, admin, make_account, make_group
):
    bob = await make_account("bob")
    group_id = await make_group()

    async with session_manager.session() as conn:
        async with conn.begin():
            await roles_service.add(
                target=bob,
                group_id=group_id,
                role=Role.ADMIN,
                caller=admin,
                conn=conn,
                log=logger,
            )

    # ADMIN on the group itself is not enough to delete it.
    with pytest.raises(authorization.PermissionDenied):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group_id, caller=bob, conn=conn, log=logger
                )

    # ...but it is enough to delete groups beneath it.
    child_id = await make_group(parent=group_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=child_id, caller=bob, conn=conn, log=logger
            )


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_root_group(session_manager, logger, admin):
    with pytest.raises(groups_service.RootGroupDeletion):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=admin.org_id, caller=admin, conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_bottom_up(
    session_manager, logger, admin, make_group, make_serial, new_domain_certificate
):
    parent_id = await make_group(description="parent")
    child_id = await make_group(parent=parent_id, description="child")
    serial_number, _ = await make_serial()

    async with session_manager.session() as conn:
        async with conn.begin():
            await serials_service.add(
                serial_number=serial_number,
                group_id=child_id,
                caller=admin,
                conn=conn,
                log=logger,
            )
            certificate = await certificates_service.create(
                group_id=child_id,
                certificate_der=new_domain_certificate(),
                revocation_checks=False,
                expiry_time=datetime.now(timezone.utc) + timedelta(days=30),
                caller=admin,
                conn=conn,
                log=logger,
            )
            CERT_ID = certificate.cert_id

    # Parent still has a child
    with pytest.raises(groups_service.GroupNotEmpty):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=parent_id, caller=admin, conn=conn, log=logger
                )

    # Child still has a serial and a certificate
    with pytest.raises(groups_service.GroupNotEmpty):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=child_id, caller=admin, conn=conn, log=logger
                )

    async with session_manager.session() as conn:
        async with conn.begin():
            await serials_service.remove(
                serial_number=serial_number,
                group_id=child_id,
                caller=admin,
                conn=conn,
                log=logger,
            )

    # Certificate remains
    with pytest.raises(groups_service.GroupNotEmpty):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=child_id, caller=admin, conn=conn, log=logger
                )

    async with session_manager.session() as conn:
        async with conn.begin():
            await certificates_service.delete(
                cert_id=CERT_ID, caller=admin, conn=conn, log=logger
            )
            await groups_service.delete_group(
                group_id=child_id, caller=admin, conn=conn, log=logger
            )
            await groups_service.delete_group(
                group_id=parent_id, caller=admin, conn=conn, log=logger
            )

    # The serial itself survives its groups.
    async with session_manager.session() as conn:
        async with conn.begin():
            serial = await serials_service.read(
                serial_number=serial_number, caller=admin, conn=conn, log=logger
            )
            assert serial.group_ids == [admin.org_id]


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_group_removes_its_grants(
    session_manager, logger, admin, make_account, make_group
):
    bob = await make_account("bob")
    group_id = await make_group()

    async with session_manager.session() as conn:
        async with conn.begin():
            await roles_service.add(
                target=bob,
                group_id=group_id,
                role=Role.REQUESTOR,
                caller=admin,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=group_id, caller=admin, conn=conn, log=logger
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            roles = await roles_service.read_for_account(
                target=bob, caller=admin, conn=conn, log=logger
            )
            assert roles == {}


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_delete(session_manager, logger, admin, make_group):
    group_id = await make_group()

    async def delete():
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group_id, caller=admin, conn=conn, log=logger
                )

    results = await asyncio.gather(delete(), delete(), return_exceptions=True)

    assert results.count(None) == 1
    assert sum(isinstance(r, groups_service.GroupNotFound) for r in results) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_add_serial_and_delete(
    session_manager, logger, admin, make_group, make_serial
):
    group_id = await make_group()
    serial_number, _ = await make_serial()

    async def add():
        async with session_manager.session() as conn:
            async with conn.begin():
                await serials_service.add(
                    serial_number=serial_number,
                    group_id=group_id,
                    caller=admin,
                    conn=conn,
                    log=logger,
                )

    async def delete():
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group_id, caller=admin, conn=conn, log=logger
                )

    added, deleted = await asyncio.gather(add(), delete(), return_exceptions=True)

    if added is None:
        # The serial got in first; the group must have survived.
        assert isinstance(deleted, groups_service.GroupNotEmpty)
        async with session_manager.session() as conn:
            async with conn.begin():
                group = await groups_service.read(
                    group_id=group_id, caller=admin, conn=conn, log=logger
                )
                assert group.serial_numbers == [serial_number]
    else:
        assert deleted is None
        assert isinstance(added, groups_service.GroupNotFound)


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_create_child_and_delete(
    session_manager, logger, admin, make_group
):
    group_id = await make_group()

    async def create():
        async with session_manager.session() as conn:
            async with conn.begin():
                child = await groups_service.create(
                    parent_id=group_id,
                    description="child",
                    caller=admin,
                    conn=conn,
                    log=logger,
                )
                return child.group_id

    async def delete():
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group_id, caller=admin, conn=conn, log=logger
                )

    created, deleted = await asyncio.gather(
        create(), delete(), return_exceptions=True
    )

    if isinstance(created, str):
        # The child got in first; its parent must have survived.
        assert isinstance(deleted, groups_service.GroupNotEmpty)
        async with session_manager.session() as conn:
            async with conn.begin():
                group = await groups_service.read(
                    group_id=group_id, caller=admin, conn=conn, log=logger
                )
                assert group.child_group_ids == [created]
    else:
        assert deleted is None
        assert isinstance(created, groups_service.GroupNotFound)
