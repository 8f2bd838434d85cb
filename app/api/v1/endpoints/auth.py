from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.v1.schemas.auth import (
    MeResponse,
    PasswordStrengthRequest,
    PasswordStrengthResponse,
    SignUpRequest,
    TokenResponse,
)
from app.core.database import get_db
from app.core.logger import logger
from app.services.auth import AuthService, InvalidAdminKey
from app.services.identity import AccountExists, IdentityProvider, ProviderError, get_identity_provider
from app.services.session import SessionContext
from app.utils.roles import is_admin
from app.utils.validation import ValidationError, password_strength

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
        data: SignUpRequest,
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider)
):
    """
    Cadastro de uma nova conta.

    Args:
        data: Nome, email, senha e chave de administrador opcional
        db: Sessão assíncrona do SQLAlchemy
        provider: Provedor de identidade

    Returns:
        TokenResponse: Token de acesso e dados da conta

    Raises:
        HTTPException: 400 - Dados inválidos ou email já cadastrado
                       403 - Chave de administrador inválida
                       500 - Falha do provedor
    """
    try:
        issued = await AuthService.sign_up(data, provider, db)
    except ValidationError as e:
        logger.warning(f"[CADASTRO] Dados inválidos: {e.code}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.as_detail()) from e
    except AccountExists as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except InvalidAdminKey as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except ProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao realizar cadastro"
        ) from e

    account = issued.user
    return TokenResponse(
        access_token=issued.access_token,
        user_id=account.id,
        name=account.name,
        email=account.email,
        is_admin=bool(data.admin_key),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
        form_data: OAuth2PasswordRequestForm = Depends(),
        db: AsyncSession = Depends(get_db),
        provider: IdentityProvider = Depends(get_identity_provider)
):
    """
    Login com email (campo username) e senha.

    Não aplica regras de composição de senha; apenas confere as credenciais.

    Raises:
        HTTPException: 401 - Email ou senha inválidos
                       500 - Falha do provedor
    """
    if not form_data.username.strip() or not form_data.password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Informe email e senha"
        )

    try:
        issued = await provider.sign_in_with_password(db, form_data.username, form_data.password)
    except ProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao realizar login"
        ) from e

    if not issued:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha inválidos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = issued.user
    return TokenResponse(
        access_token=issued.access_token,
        user_id=account.id,
        name=account.name,
        email=account.email,
        is_admin=await is_admin(provider, db, account.id),
    )


@router.post("/logout")
async def logout(
        session: SessionContext = Depends(get_session),
        db: AsyncSession = Depends(get_db)
):
    try:
        await session.provider.sign_out(db, session.user)
    except ProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao realizar logout"
        ) from e
    return {"message": "Logout realizado com sucesso!"}


@router.get("/me", response_model=MeResponse)
async def me(session: SessionContext = Depends(get_session)):
    user = session.user
    return MeResponse(id=user.id, name=user.name, email=user.email, is_admin=session.is_admin)


@router.post("/password-strength", response_model=PasswordStrengthResponse)
async def check_password_strength(data: PasswordStrengthRequest):
    strength = password_strength(data.password)
    return PasswordStrengthResponse(score=strength.score, label=strength.label, checks=strength.checks)
