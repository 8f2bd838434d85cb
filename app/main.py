from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.logger import logger
from contextlib import asynccontextmanager
from app.core.database import engine, Base
from app.api.v1.api import api_router
from app.api.functions.delete_user import router as functions_router
from app.models import account, exam, user_role


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENVIRONMENT} environment")
    logger.debug(f"Secret Key: {'*' * len(settings.SECRET_KEY)} (hidden)")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.success("Banco de dados inicializado com sucesso!")
    except Exception as e:
        logger.critical(f"Erro ao inicializar o banco de dados: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME}")
    await engine.dispose()
    logger.debug("Conexões com o banco de dados encerradas")

app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0", lifespan=lifespan)

origins = list(dict.fromkeys([*settings.CORS_ORIGINS, settings.PROVIDER_URL]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(functions_router)
