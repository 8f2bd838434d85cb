"""
Provedor de identidade: contas, sessões, papéis e o cliente administrativo.

O restante da aplicação só conversa com contas através deste módulo. As
mudanças de estado de autenticação (login, logout, remoção de conta) são
publicadas em ``IdentityProvider.auth_events``.
"""
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.jwt import create_access_token, verify_token
from app.core.logger import logger
from app.models import Account, Exam, Role, UserRole
from app.utils.realtime import Broker, ChangeEvent, ChangeType, Subscription, exam_changes
from app.utils.security import hash_password, verify_password


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_DELETED = "USER_DELETED"


@dataclass
class AuthStateChange:
    event: AuthEvent
    user_id: str


@dataclass
class IssuedSession:
    access_token: str
    user: Account
    token_type: str = "bearer"


class ProviderError(Exception):
    """Falha opaca do provedor (banco indisponível, uso indevido do cliente privilegiado)."""


class AccountExists(ValueError):
    pass


class IdentityProvider:
    def __init__(self, service_role_key: Optional[str], changes: Broker = exam_changes):
        self._service_role_key = service_role_key
        self.changes = changes
        self.auth_events = Broker("auth")

    def on_auth_state_change(self, callback: Callable[[AuthStateChange], object]) -> Subscription:
        return self.auth_events.subscribe(callback)

    @staticmethod
    def _issue(account: Account) -> IssuedSession:
        token = create_access_token(data={"sub": account.id, "ver": account.token_version})
        return IssuedSession(access_token=token, user=account)

    async def _create_account(
            self,
            db: AsyncSession,
            name: str,
            email: str,
            password: str,
            roles: Iterable[Role] = ()
    ) -> Account:
        try:
            result = await db.execute(select(Account).where(Account.email == email))
            if result.scalars().first():
                logger.warning(f"[CADASTRO] Email já cadastrado: {email}")
                raise AccountExists("Email já cadastrado")

            account = Account(name=name, email=email, password=hash_password(password))
            db.add(account)
            await db.flush()
            for role in roles:
                db.add(UserRole(user_id=account.id, role=role.value))
            await db.commit()
            await db.refresh(account)
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"[CADASTRO] Email já cadastrado (concorrente): {email}")
            raise AccountExists("Email já cadastrado") from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[CADASTRO] Erro ao criar conta {email}: {str(e)}")
            raise ProviderError(str(e)) from e

        logger.info(f"[CADASTRO] Conta criada: {email} (ID {account.id})")
        return account

    async def sign_up(
            self,
            db: AsyncSession,
            name: str,
            email: str,
            password: str,
            roles: Iterable[Role] = ()
    ) -> IssuedSession:
        """
        Cria a conta e já devolve uma sessão ativa.

        Os dados devem chegar validados; aqui só se garante a unicidade do email.

        Raises:
            AccountExists: Email já usado por outra conta
            ProviderError: Erro de banco de dados
        """
        account = await self._create_account(db, name, email, password, roles)
        await self.auth_events.publish(AuthStateChange(AuthEvent.SIGNED_IN, account.id))
        return self._issue(account)

    async def sign_in_with_password(self, db: AsyncSession, email: str, password: str) -> Optional[IssuedSession]:
        try:
            result = await db.execute(select(Account).where(Account.email == email.strip().lower()))
            account = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"[LOGIN] Erro ao buscar conta {email}: {str(e)}")
            raise ProviderError(str(e)) from e

        if not account or not verify_password(password, account.password):
            logger.warning(f"[LOGIN] Credenciais inválidas para {email}")
            return None

        logger.info(f"[LOGIN] Login realizado: {account.email}")
        await self.auth_events.publish(AuthStateChange(AuthEvent.SIGNED_IN, account.id))
        return self._issue(account)

    async def get_user(self, db: AsyncSession, token: str) -> Optional[Account]:
        """Resolve o token para a conta; None se o token for inválido, expirado ou revogado."""
        claims = verify_token(token)
        if not claims or "sub" not in claims:
            return None

        try:
            account = await db.get(Account, claims["sub"])
        except SQLAlchemyError as e:
            logger.error(f"[SESSÃO] Erro ao resolver usuário: {str(e)}")
            raise ProviderError(str(e)) from e

        if account is None:
            logger.warning(f"[SESSÃO] Token de conta inexistente: {claims['sub']}")
            return None
        if claims.get("ver") != account.token_version:
            logger.warning(f"[SESSÃO] Token revogado para {account.email}")
            return None
        return account

    async def sign_out(self, db: AsyncSession, account: Account) -> None:
        try:
            account.token_version += 1
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[LOGOUT] Erro ao encerrar sessões de {account.email}: {str(e)}")
            raise ProviderError(str(e)) from e

        logger.info(f"[LOGOUT] Sessões encerradas: {account.email}")
        await self.auth_events.publish(AuthStateChange(AuthEvent.SIGNED_OUT, account.id))

    async def has_role(self, db: AsyncSession, user_id: str, role: Role) -> bool:
        try:
            result = await db.execute(
                select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role.value)
            )
            return result.first() is not None
        except SQLAlchemyError as e:
            logger.error(f"[PAPÉIS] Erro ao consultar papel {role.value} de {user_id}: {str(e)}")
            raise ProviderError(str(e)) from e

    async def list_accounts(self, db: AsyncSession) -> List[Account]:
        try:
            result = await db.execute(select(Account).order_by(Account.name))
            accounts = list(result.scalars().all())
            roles = await db.execute(select(UserRole.user_id, UserRole.role))
        except SQLAlchemyError as e:
            logger.error(f"[COLABORADORES] Erro ao listar contas: {str(e)}")
            raise ProviderError(str(e)) from e

        admin_ids = {user_id for user_id, role in roles.all() if role == Role.ADMIN.value}
        for account in accounts:
            account.is_admin = account.id in admin_ids
        return accounts

    def admin(self, service_role_key: Optional[str]) -> "AdminClient":
        """
        Cliente com privilégios de serviço.

        Raises:
            ProviderError: Chave de serviço ausente ou diferente da configurada
        """
        if not self._service_role_key or not service_role_key or not secrets.compare_digest(
                service_role_key, self._service_role_key
        ):
            logger.error("[ADMIN] Chave de serviço inválida")
            raise ProviderError("Chave de serviço inválida")
        return AdminClient(self)


class AdminClient:
    def __init__(self, provider: IdentityProvider):
        self._provider = provider

    async def create_user(
            self,
            db: AsyncSession,
            name: str,
            email: str,
            password: str,
            is_admin: bool = False
    ) -> Account:
        roles = [Role.ADMIN] if is_admin else []
        account = await self._provider._create_account(db, name, email, password, roles)
        account.is_admin = is_admin
        return account

    async def delete_user(self, db: AsyncSession, user_id: str) -> None:
        """
        Remove a conta; o banco apaga em cascata as provas e os papéis dela.

        Raises:
            ProviderError: Conta inexistente ou erro de banco de dados
        """
        try:
            account = await db.get(Account, user_id)
            if account is None:
                raise ProviderError(f"Usuário {user_id} não encontrado")

            result = await db.execute(select(Exam.id).where(Exam.user_id == user_id))
            exam_ids = list(result.scalars().all())

            await db.execute(delete(Account).where(Account.id == user_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[ADMIN] Erro ao remover usuário {user_id}: {str(e)}")
            raise ProviderError(str(e)) from e

        logger.info(f"[ADMIN] Usuário removido: {user_id} ({len(exam_ids)} provas em cascata)")

        for exam_id in exam_ids:
            await self._provider.changes.publish(
                ChangeEvent(table="exams", type=ChangeType.DELETE, record_id=exam_id, user_id=user_id)
            )
        await self._provider.auth_events.publish(AuthStateChange(AuthEvent.USER_DELETED, user_id))


identity_provider = IdentityProvider(service_role_key=settings.SERVICE_ROLE_KEY)


def get_identity_provider() -> IdentityProvider:
    return identity_provider
