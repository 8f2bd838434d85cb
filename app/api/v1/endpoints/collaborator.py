from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.v1.schemas.collaborator import CollaboratorResponse, CreateCollaborator
from app.core.database import get_db
from app.core.logger import logger
from app.services.collaborator import CollaboratorService
from app.services.identity import AccountExists, IdentityProvider, ProviderError, get_identity_provider
from app.services.session import SessionContext
from app.utils.validation import ValidationError

router = APIRouter(prefix="/collaborator", tags=["Collaborator"])


@router.get("/", response_model=List[CollaboratorResponse])
async def get_all_collaborators(
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider),
        session: SessionContext = Depends(require_admin)
):
    """
    Lista todos os colaboradores cadastrados.

    Args:
        db: Sessão assíncrona do SQLAlchemy
        provider: Provedor de identidade
        session: Sessão de um administrador

    Returns:
        List[CollaboratorResponse]: Colaboradores com a marcação de administrador

    Raises:
        HTTPException: 500 - Erro ao carregar colaboradores
    """
    try:
        accounts = await CollaboratorService.get_all_collaborators(provider, db)
    except ProviderError as e:
        logger.error(f"[COLABORADORES] Erro ao carregar colaboradores: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao carregar colaboradores"
        ) from e

    return [
        CollaboratorResponse(id=account.id, name=account.name, email=account.email, is_admin=account.is_admin)
        for account in accounts
    ]


@router.post("/create", response_model=CollaboratorResponse, status_code=status.HTTP_201_CREATED)
async def create_collaborator(
        data: CreateCollaborator,
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider),
        session: SessionContext = Depends(require_admin)
):
    """
    Cadastro de colaborador por um administrador.

    Raises:
        HTTPException: 400 - Dados inválidos ou email já cadastrado
                       500 - Erro ao cadastrar colaborador
    """
    try:
        account = await CollaboratorService.create_collaborator(data, provider, db)
    except ValidationError as e:
        logger.warning(f"[COLABORADORES] Dados inválidos: {e.code}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.as_detail()) from e
    except AccountExists as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ProviderError as e:
        logger.error(f"[COLABORADORES] Erro ao cadastrar colaborador: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao cadastrar colaborador"
        ) from e

    return CollaboratorResponse(id=account.id, name=account.name, email=account.email, is_admin=data.is_admin)
