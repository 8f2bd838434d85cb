import asyncio
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.models import Account, Exam, Role, Shift, UserRole
from app.services.identity import AccountExists, AuthEvent, IdentityProvider, ProviderError, identity_provider
from app.services.session import SessionContext
from app.utils.realtime import Broker

from conftest import PASSWORD, create_account


async def _count(model, **filters) -> int:
    async with AsyncSessionLocal() as db:
        stmt = select(func.count()).select_from(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        return (await db.execute(stmt)).scalar_one()


async def _seed_exam(user_id: str, subject: str) -> str:
    async with AsyncSessionLocal() as db:
        exam = Exam(user_id=user_id, exam_date=date.today() + timedelta(days=30), subject=subject, shift=Shift.MORNING.value)
        db.add(exam)
        await db.commit()
        return exam.id


def test_deleting_account_cascades_to_exams_and_roles():
    changes = Broker("tests")
    provider = IdentityProvider(service_role_key=settings.SERVICE_ROLE_KEY, changes=changes)
    user_id = create_account("Usuária Um", "u1@example.com", is_admin=True)
    asyncio.run(_seed_exam(user_id, "Cálculo"))
    asyncio.run(_seed_exam(user_id, "Física"))

    deleted_exams, auth_events = [], []
    changes.subscribe(lambda event: deleted_exams.append(event.record_id))
    provider.on_auth_state_change(auth_events.append)

    assert asyncio.run(_count(Exam, user_id=user_id)) == 2
    assert asyncio.run(_count(UserRole, user_id=user_id)) == 1

    async def delete():
        async with AsyncSessionLocal() as db:
            await provider.admin(settings.SERVICE_ROLE_KEY).delete_user(db, user_id)

    asyncio.run(delete())

    assert asyncio.run(_count(Account, id=user_id)) == 0
    assert asyncio.run(_count(Exam, user_id=user_id)) == 0
    assert asyncio.run(_count(UserRole, user_id=user_id)) == 0
    assert len(deleted_exams) == 2
    assert [(change.event, change.user_id) for change in auth_events] == [(AuthEvent.USER_DELETED, user_id)]


def test_deleting_unknown_account_is_a_provider_error():
    async def delete():
        async with AsyncSessionLocal() as db:
            await identity_provider.admin(settings.SERVICE_ROLE_KEY).delete_user(db, "nao-existe")

    with pytest.raises(ProviderError):
        asyncio.run(delete())


@pytest.mark.parametrize("key", [None, "", "chave-errada"])
def test_admin_client_requires_service_role_key(key):
    with pytest.raises(ProviderError):
        identity_provider.admin(key)


def test_collaborators_are_accounts_without_role_rows():
    colab_id = create_account("Colab", "colab@example.com")
    admin_id = create_account("Admin", "admin@example.com", is_admin=True)

    assert asyncio.run(_count(UserRole, user_id=colab_id)) == 0
    assert asyncio.run(_count(UserRole, user_id=admin_id, role=Role.ADMIN.value)) == 1
    assert [role.value for role in Role] == ["admin"]


def test_duplicate_email_is_rejected():
    create_account("Ana", "ana@example.com")

    with pytest.raises(AccountExists):
        create_account("Outra Ana", "ana@example.com")


def test_concurrent_duplicate_email_is_reported_as_existing_account():
    create_account("Ana", "ana@example.com")

    async def scenario():
        async with AsyncSessionLocal() as db:
            execute = db.execute

            async def stale_lookup(statement, *args, **kwargs):
                # a outra inscrição ainda não estava gravada na checagem
                db.execute = execute
                return await execute(select(Account).where(Account.id == "nenhuma"))

            db.execute = stale_lookup
            await identity_provider.sign_up(db, "Outra Ana", "ana@example.com", PASSWORD)

    with pytest.raises(AccountExists):
        asyncio.run(scenario())
    assert asyncio.run(_count(Account, email="ana@example.com")) == 1


def test_sign_out_revokes_issued_tokens():
    create_account("Ana", "ana@example.com")

    async def scenario():
        async with AsyncSessionLocal() as db:
            issued = await identity_provider.sign_in_with_password(db, "ANA@example.com ", PASSWORD)
            assert await identity_provider.get_user(db, issued.access_token) is not None

            await identity_provider.sign_out(db, issued.user)
            return await identity_provider.get_user(db, issued.access_token)

    assert asyncio.run(scenario()) is None


def test_wrong_password_does_not_sign_in():
    create_account("Ana", "ana@example.com")

    async def scenario():
        async with AsyncSessionLocal() as db:
            return await identity_provider.sign_in_with_password(db, "ana@example.com", "errada")

    assert asyncio.run(scenario()) is None


def test_has_role():
    admin_id = create_account("Admin", "admin@example.com", is_admin=True)
    colab_id = create_account("Colab", "colab@example.com")

    async def scenario():
        async with AsyncSessionLocal() as db:
            return (
                await identity_provider.has_role(db, admin_id, Role.ADMIN),
                await identity_provider.has_role(db, colab_id, Role.ADMIN),
            )

    assert asyncio.run(scenario()) == (True, False)


def test_session_context_follows_auth_events():
    provider = IdentityProvider(service_role_key=settings.SERVICE_ROLE_KEY, changes=Broker("tests"))
    user_id = create_account("Admin", "admin@example.com", is_admin=True)

    async def scenario():
        async with AsyncSessionLocal() as db:
            issued = await provider.sign_in_with_password(db, "admin@example.com", PASSWORD)
            async with await SessionContext(provider).start(db, issued.access_token) as session:
                assert session.loading is False
                assert session.actor.id == user_id
                assert session.is_admin is True
                assert provider.auth_events.subscriber_count == 1

                await provider.sign_out(db, issued.user)

                assert session.active is False
                assert session.is_admin is False
            return provider.auth_events.subscriber_count

    assert asyncio.run(scenario()) == 0


def test_session_context_ignores_other_accounts_events():
    provider = IdentityProvider(service_role_key=settings.SERVICE_ROLE_KEY, changes=Broker("tests"))
    create_account("Ana", "ana@example.com")
    create_account("Bia", "bia@example.com")

    async def scenario():
        async with AsyncSessionLocal() as db:
            ana = await provider.sign_in_with_password(db, "ana@example.com", PASSWORD)
            bia = await provider.sign_in_with_password(db, "bia@example.com", PASSWORD)
            async with await SessionContext(provider).start(db, ana.access_token) as session:
                await provider.sign_out(db, bia.user)
                return session.active

    assert asyncio.run(scenario()) is True


def test_session_without_token_is_inactive():
    async def scenario():
        async with AsyncSessionLocal() as db:
            async with await SessionContext(identity_provider).start(db, None) as session:
                return session.active, session.is_admin

    assert asyncio.run(scenario()) == (False, False)
