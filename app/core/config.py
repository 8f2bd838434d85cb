from typing import List, Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "Calendário de Provas"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str
    SECRET_KEY: str = "calendario-de-provas-troque-esta-chave-em-producao"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    ENVIRONMENT: str = "development"
    LOG_DIR: str = "logs"
    PROVIDER_URL: str = "http://localhost:8000"
    PUBLIC_KEY: Optional[str] = None
    SERVICE_ROLE_KEY: str
    ADMIN_KEY: Optional[str] = None
    EXPOSE_ERROR_DETAILS: bool = False
    CORS_ORIGINS: List[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
    ]

    class Config:
        case_sensitive = True


settings = Settings()
