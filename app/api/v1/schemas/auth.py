from typing import Dict, Optional

from pydantic import BaseModel


class SignUpRequest(BaseModel):
    name: str
    email: str
    password: str
    admin_key: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    name: str
    email: str
    is_admin: bool = False


class MeResponse(BaseModel):
    id: str
    name: str
    email: str
    is_admin: bool


class PasswordStrengthRequest(BaseModel):
    password: str = ""


class PasswordStrengthResponse(BaseModel):
    score: float
    label: str
    checks: Dict[str, bool]
