"""
Função administrativa de remoção de colaboradores.

POST /functions/delete-user com ``Authorization: Bearer <token>`` e corpo
``{"userId": "..."}``. As respostas seguem o formato ``{"message"}`` em caso
de sucesso e ``{"error"[, "details"]}`` nas falhas.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import oauth2_scheme
from app.core.config import settings
from app.core.database import get_db
from app.core.logger import logger
from app.services.identity import IdentityProvider, ProviderError, get_identity_provider
from app.services.session import SessionContext

router = APIRouter(prefix="/functions", tags=["Functions"])

UNAUTHORIZED = "Não autorizado"
FORBIDDEN = "Apenas administradores podem remover usuários"
MISSING_USER_ID = "ID do usuário não fornecido"
SELF_DELETION = "Você não pode remover a si mesmo"
INVALID_BODY = "Corpo da requisição inválido"
DELETE_FAILED = "Erro ao remover usuário"
INTERNAL_ERROR = "Erro interno do servidor"
SUCCESS = "Usuário removido com sucesso"


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def _read_user_id(request: Request) -> Optional[str]:
    payload = await request.json()
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    user_id = payload.get("userId")
    if user_id is not None and not isinstance(user_id, str):
        raise ValueError("userId must be a string")
    return user_id or None


@router.post("/delete-user")
async def delete_user(
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider)
):
    """
    Remove a conta indicada e, em cascata, as provas e papéis dela.

    Ordem das checagens: credencial presente (401), sessão válida (401),
    auto-remoção (400), papel de administrador (403), corpo legível e userId
    presente (400).

    Returns:
        JSONResponse: 200 {"message"} ou {"error"} com 400/401/403/500
    """
    if not token:
        logger.warning("[REMOÇÃO DE USUÁRIO] Requisição sem credencial")
        return _error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED)

    try:
        async with await SessionContext(provider).start(db, token) as session:
            if not session.active:
                logger.warning("[REMOÇÃO DE USUÁRIO] Credencial inválida")
                return _error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED)

            caller = session.user
            body_error = None
            try:
                target_id = await _read_user_id(request)
            except ValueError as e:
                target_id, body_error = None, e

            if target_id is not None and target_id == caller.id:
                logger.warning(f"[REMOÇÃO DE USUÁRIO] Tentativa de auto-remoção: {caller.email}")
                return _error(status.HTTP_400_BAD_REQUEST, SELF_DELETION)

            if not session.is_admin:
                logger.warning(f"[REMOÇÃO DE USUÁRIO] Acesso negado para {caller.email}")
                return _error(status.HTTP_403_FORBIDDEN, FORBIDDEN)

            # Corpo ilegível só é informado a administradores
            if body_error is not None:
                logger.warning(f"[REMOÇÃO DE USUÁRIO] Corpo inválido enviado por {caller.email}: {str(body_error)}")
                return _error(status.HTTP_400_BAD_REQUEST, INVALID_BODY)

            if not target_id:
                return _error(status.HTTP_400_BAD_REQUEST, MISSING_USER_ID)

            try:
                await provider.admin(settings.SERVICE_ROLE_KEY).delete_user(db, target_id)
            except ProviderError as e:
                logger.error(f"[REMOÇÃO DE USUÁRIO] Erro ao remover {target_id}: {str(e)}")
                details = str(e) if settings.EXPOSE_ERROR_DETAILS else None
                return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, DELETE_FAILED, details)

            logger.info(f"[REMOÇÃO DE USUÁRIO] {caller.email} removeu o usuário {target_id}")
            return JSONResponse(status_code=status.HTTP_200_OK, content={"message": SUCCESS})

    except Exception as e:
        logger.error(f"[REMOÇÃO DE USUÁRIO] Erro inesperado: {str(e)}")
        details = str(e) if settings.EXPOSE_ERROR_DETAILS else None
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR, details)
