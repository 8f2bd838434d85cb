from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import logger
from app.models import Role
from app.services.identity import IdentityProvider, ProviderError


@dataclass(frozen=True)
class Actor:
    id: str
    is_admin: bool = False


class OwnedRecord(Protocol):
    user_id: str


def can_edit_exam(actor: Actor, exam: OwnedRecord) -> bool:
    """Administradores editam qualquer prova; os demais só as próprias."""
    return actor.is_admin or actor.id == exam.user_id


async def is_admin(provider: IdentityProvider, db: AsyncSession, user_id: str) -> bool:
    """
    Verifica se a conta possui o papel de administrador.

    Falhas do provedor contam como "não administrador".

    Args:
        provider: Provedor de identidade
        db: Sessão assíncrona do SQLAlchemy
        user_id: Identificador da conta

    Returns:
        bool: True somente se o papel admin existir
    """
    try:
        return await provider.has_role(db, user_id, Role.ADMIN)
    except ProviderError as e:
        logger.warning(f"[AUTORIZAÇÃO] Consulta de papel falhou para {user_id}, acesso negado: {str(e)}")
        return False
