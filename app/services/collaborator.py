from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schemas.collaborator import CreateCollaborator
from app.core.config import settings
from app.core.logger import logger
from app.models import Account
from app.services.identity import IdentityProvider
from app.utils.validation import validate_email, validate_name, validate_password


class CollaboratorService:
    @staticmethod
    async def get_all_collaborators(provider: IdentityProvider, db: AsyncSession) -> List[Account]:
        """
        Lista todas as contas com a marcação de administrador.

        Raises:
            ProviderError: Erro ao consultar o provedor
        """
        accounts = await provider.list_accounts(db)
        logger.info(f"[COLABORADORES] {len(accounts)} colaboradores encontrados")
        return accounts

    @staticmethod
    async def create_collaborator(
            data: CreateCollaborator,
            provider: IdentityProvider,
            db: AsyncSession
    ) -> Account:
        """
        Cadastra um colaborador, opcionalmente como administrador.

        Args:
            data: Nome, email, senha e flag de administrador
            provider: Provedor de identidade
            db: Sessão assíncrona do SQLAlchemy

        Returns:
            Account: Conta criada

        Raises:
            ValidationError: Nome, email ou senha fora das regras
            AccountExists: Email já cadastrado
            ProviderError: Falha do provedor
        """
        name = validate_name(data.name)
        email = validate_email(data.email)
        password = validate_password(data.password)

        account = await provider.admin(settings.SERVICE_ROLE_KEY).create_user(
            db, name=name, email=email, password=password, is_admin=data.is_admin
        )
        logger.info(f"[COLABORADORES] Colaborador cadastrado: {email}, admin: {data.is_admin}")
        return account
