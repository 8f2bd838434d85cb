"""
Regras de validação dos formulários: prova, senha, email e nome.

Todas as funções são puras. Cada regra violada levanta uma subclasse de
``ValidationError`` com o campo afetado, um código estável e a mensagem
exibida ao usuário.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple, Union

import email_validator

from app.models.exam import Shift

MIN_LEAD_DAYS = 14
SUBJECT_MAX_LENGTH = 128
PASSWORD_MIN_LENGTH = 8
SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'
EMAIL_MAX_LENGTH = 255
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

_DIGIT_RE = re.compile(r"\d")
_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARS) + "]")

STRENGTH_LABELS = ["", "Fraca", "Média", "Forte"]


class ValidationError(ValueError):
    field: str = ""
    code: str = "invalid"
    message: str = "Valor inválido"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def as_detail(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


class InvalidDate(ValidationError):
    field = "exam_date"
    code = "invalid_date"
    message = f"A data da prova deve ter pelo menos {MIN_LEAD_DAYS} dias de antecedência"


class InvalidSubject(ValidationError):
    field = "subject"
    code = "invalid_subject"
    message = f"Matéria é obrigatória e deve ter no máximo {SUBJECT_MAX_LENGTH} caracteres"


class InvalidShift(ValidationError):
    field = "shift"
    code = "invalid_shift"
    message = "Selecione um turno"


class TooShort(ValidationError):
    field = "password"
    code = "too_short"
    message = f"Senha deve ter no mínimo {PASSWORD_MIN_LENGTH} caracteres"


class MissingDigit(ValidationError):
    field = "password"
    code = "missing_digit"
    message = "Senha deve conter pelo menos 1 número"


class MissingSpecialChar(ValidationError):
    field = "password"
    code = "missing_special_char"
    message = "Senha deve conter pelo menos 1 caractere especial"


class InvalidEmail(ValidationError):
    field = "email"
    code = "invalid_email"
    message = "Email inválido"


class InvalidName(ValidationError):
    field = "name"
    code = "invalid_name"
    message = f"Nome deve ter entre {NAME_MIN_LENGTH} e {NAME_MAX_LENGTH} caracteres"


def _as_date(value: Union[date, datetime, str, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as e:
            raise InvalidDate("Data da prova inválida") from e
    raise InvalidDate("Data da prova é obrigatória")


def earliest_exam_date(now: Union[date, datetime]) -> date:
    """Primeira data aceita para uma prova criada ou editada em ``now``."""
    return _as_date(now) + timedelta(days=MIN_LEAD_DAYS)


def validate_exam(
        exam_date: Union[date, datetime, str, None],
        subject: Optional[str],
        shift: Union[Shift, str, None],
        now: Union[date, datetime]
) -> Tuple[date, str, Shift]:
    """
    Valida os dados de uma prova no momento da criação ou edição.

    Args:
        exam_date: Data da prova (date, datetime ou texto YYYY-MM-DD)
        subject: Matéria; espaços nas pontas são removidos antes da checagem
        shift: Turno (morning, afternoon ou night)
        now: Instante de referência da operação

    Returns:
        Tuple[date, str, Shift]: Data, matéria normalizada e turno

    Raises:
        InvalidDate: Data anterior a now + 14 dias ou ilegível
        InvalidSubject: Matéria vazia ou com mais de 128 caracteres
        InvalidShift: Turno fora do conjunto permitido
    """
    parsed_date = _as_date(exam_date)
    if parsed_date < earliest_exam_date(now):
        raise InvalidDate()

    normalized_subject = (subject or "").strip()
    if not 1 <= len(normalized_subject) <= SUBJECT_MAX_LENGTH:
        raise InvalidSubject()

    try:
        normalized_shift = Shift(shift)
    except ValueError as e:
        raise InvalidShift() from e

    return parsed_date, normalized_subject, normalized_shift


def password_checks(password: str) -> Dict[str, bool]:
    password = password or ""
    return {
        "length": len(password) >= PASSWORD_MIN_LENGTH,
        "number": bool(_DIGIT_RE.search(password)),
        "special": bool(_SPECIAL_RE.search(password)),
    }


def validate_password(password: str) -> str:
    """
    Regra estrita usada no cadastro. O login não passa por aqui.

    Raises:
        TooShort, MissingDigit, MissingSpecialChar: na ordem em que são checadas
    """
    checks = password_checks(password)
    if not checks["length"]:
        raise TooShort()
    if not checks["number"]:
        raise MissingDigit()
    if not checks["special"]:
        raise MissingSpecialChar()
    return password


@dataclass
class PasswordStrength:
    score: float
    label: str
    checks: Dict[str, bool] = field(default_factory=dict)


def password_strength(password: str) -> PasswordStrength:
    # Só alimenta o indicador visual
    if not password:
        return PasswordStrength(score=0.0, label="", checks=password_checks(""))
    checks = password_checks(password)
    passed = sum(checks.values())
    return PasswordStrength(score=passed / 3, label=STRENGTH_LABELS[passed], checks=checks)


def validate_email(email: Optional[str]) -> str:
    """
    Normaliza e valida o formato do email. O domínio não é consultado.

    Raises:
        InvalidEmail: Email vazio, longo demais ou malformado
    """
    normalized = (email or "").strip().lower()
    if not normalized or len(normalized) > EMAIL_MAX_LENGTH:
        raise InvalidEmail()
    try:
        checked = email_validator.validate_email(normalized, check_deliverability=False)
    except email_validator.EmailNotValidError as e:
        raise InvalidEmail() from e
    return checked.normalized.lower()


def validate_name(name: Optional[str]) -> str:
    normalized = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(normalized) <= NAME_MAX_LENGTH:
        raise InvalidName()
    return normalized
