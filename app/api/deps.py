import secrets
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.logger import logger
from app.services.identity import IdentityProvider, get_identity_provider
from app.services.session import SessionContext

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)


async def verify_api_key(
        apikey: Optional[str] = Header(None),
        apikey_param: Optional[str] = Query(None, alias="apikey")
) -> None:
    """Exige a chave pública (cabeçalho ou parâmetro apikey) quando PUBLIC_KEY estiver configurada."""
    apikey = apikey or apikey_param
    if not settings.PUBLIC_KEY:
        return
    if not apikey or not secrets.compare_digest(apikey, settings.PUBLIC_KEY):
        logger.warning("[API KEY] Requisição sem chave pública válida")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Chave de API inválida"
        )


async def get_session(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider)
) -> AsyncGenerator[SessionContext, None]:
    """
    Sessão autenticada da requisição.

    Raises:
        HTTPException: 401 - Token ausente, inválido, expirado ou revogado
    """
    if not token:
        logger.warning("[AUTENTICAÇÃO] Requisição sem token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autorizado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = await SessionContext(provider).start(db, token)
    if not session.active:
        session.close()
        logger.warning("[AUTENTICAÇÃO] Token inválido ou expirado")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"[AUTENTICAÇÃO] Usuário autenticado: {session.user.email}, admin: {session.is_admin}")
    async with session:
        yield session


async def require_admin(session: SessionContext = Depends(get_session)) -> SessionContext:
    if not session.is_admin:
        logger.warning(f"[AUTORIZAÇÃO] Acesso negado para '{session.user.email}': requer administrador")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado. Apenas administradores podem acessar este recurso."
        )
    return session
