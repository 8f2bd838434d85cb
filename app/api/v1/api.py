from fastapi import APIRouter, Depends

from app.api.deps import verify_api_key
from app.api.v1.endpoints import auth, collaborator, exam

api_router = APIRouter(dependencies=[Depends(verify_api_key)])
api_router.include_router(auth.router)
api_router.include_router(exam.router)
api_router.include_router(collaborator.router)
