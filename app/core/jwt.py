from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from app.core.config import settings
from app.core.logger import logger


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Gera um JWT assinado com SECRET_KEY.

    Args:
        data: Claims do token (sub, ver, ...)
        expires_delta: Validade do token; por padrão ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        str: Token codificado
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Decodifica o token; None se a assinatura for inválida ou o token tiver expirado."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("[TOKEN] Token expirado")
        return None
    except jwt.PyJWTError as e:
        logger.warning(f"[TOKEN] Token inválido: {str(e)}")
        return None
