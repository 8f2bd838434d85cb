import secrets
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schemas.auth import SignUpRequest
from app.core.config import settings
from app.core.logger import logger
from app.models import Role
from app.services.identity import IdentityProvider, IssuedSession
from app.utils.validation import validate_email, validate_name, validate_password


class InvalidAdminKey(PermissionError):
    pass


class AuthService:
    @staticmethod
    def verify_admin_key(admin_key: Optional[str]) -> bool:
        """
        Confere a chave de cadastro de administradores.

        Sem ADMIN_KEY configurada nenhuma chave é aceita.
        """
        if not settings.ADMIN_KEY or not admin_key:
            return False
        if secrets.compare_digest(admin_key, settings.ADMIN_KEY):
            logger.info("[VERIFICAÇÃO DE CHAVE] Chave de administrador aceita")
            return True
        logger.warning("[VERIFICAÇÃO DE CHAVE] Chave de administrador inválida")
        return False

    @staticmethod
    async def sign_up(data: SignUpRequest, provider: IdentityProvider, db: AsyncSession) -> IssuedSession:
        """
        Cadastro público com a regra estrita de senha.

        Args:
            data: Nome, email, senha e chave de administrador opcional
            provider: Provedor de identidade
            db: Sessão assíncrona do SQLAlchemy

        Returns:
            IssuedSession: Sessão da conta recém-criada

        Raises:
            ValidationError: Campo fora das regras
            InvalidAdminKey: Chave de administrador informada e incorreta
            AccountExists: Email já cadastrado
            ProviderError: Falha do provedor
        """
        name = validate_name(data.name)
        email = validate_email(data.email)
        password = validate_password(data.password)

        roles = []
        if data.admin_key:
            if not AuthService.verify_admin_key(data.admin_key):
                raise InvalidAdminKey("Chave de administrador inválida")
            roles.append(Role.ADMIN)

        issued = await provider.sign_up(db, name=name, email=email, password=password, roles=roles)
        logger.info(f"[CADASTRO] Cadastro realizado: {email}, admin: {bool(roles)}")
        return issued
