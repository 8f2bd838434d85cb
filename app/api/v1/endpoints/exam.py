from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from starlette.responses import Response
from starlette.websockets import WebSocketState
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.v1.schemas.exam import CreateExam, ExamListMessage, ExamResponse, UpdateExam
from app.core.database import AsyncSessionLocal, get_db
from app.core.logger import logger
from app.services.exam import ExamService
from app.services.exam_view import ExamCollectionView
from app.services.identity import AuthEvent, AuthStateChange, IdentityProvider, get_identity_provider
from app.services.session import SessionContext
from app.utils.validation import ValidationError

router = APIRouter(prefix="/exam", tags=["Exam"])


def _validation_error(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.as_detail())


@router.get("/", response_model=List[ExamResponse])
async def get_exams(
        user_id: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
        session: SessionContext = Depends(get_session)
):
    """
    Lista as provas em ordem crescente de data.

    Args:
        user_id: Filtra pelas provas de um colaborador
        db: Sessão assíncrona do SQLAlchemy
        session: Sessão autenticada

    Returns:
        List[ExamResponse]: Provas com o nome do colaborador
    """
    return await ExamService.get_all_exams(db, owner_id=user_id)


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(
        exam_id: str,
        db: AsyncSession = Depends(get_db),
        session: SessionContext = Depends(get_session)
):
    """
    Carrega uma prova para edição.

    Raises:
        HTTPException: 404 - Prova não encontrada
                       403 - Sem permissão para editar
    """
    exam = await ExamService.get_editable_exam(exam_id, session.actor, db)
    return ExamService.serialize(exam, await ExamService.get_owner_name(exam, db))


@router.post("/create", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(
        exam: CreateExam,
        db: AsyncSession = Depends(get_db),
        session: SessionContext = Depends(get_session)
):
    """
    Cadastra uma prova para o usuário autenticado.

    Args:
        exam: Data, matéria e turno
        db: Sessão assíncrona do SQLAlchemy
        session: Sessão autenticada

    Returns:
        ExamResponse: Prova criada

    Raises:
        HTTPException: 400 - Dados fora das regras
                       500 - Erro ao gravar
    """
    try:
        new_exam = await ExamService.create_exam(exam, session.actor, db)
    except ValidationError as e:
        logger.warning(f"[CRIAÇÃO DE PROVA] Dados inválidos: {e.code}")
        raise _validation_error(e) from e

    return ExamService.serialize(new_exam, session.user.name)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam(
        exam_id: str,
        exam: UpdateExam,
        db: AsyncSession = Depends(get_db),
        session: SessionContext = Depends(get_session)
):
    """
    Atualiza data, matéria e turno de uma prova.

    Raises:
        HTTPException: 400 - Dados fora das regras
                       403 - Sem permissão
                       404 - Prova não encontrada
    """
    try:
        updated = await ExamService.update_exam(exam_id, exam, session.actor, db)
    except ValidationError as e:
        logger.warning(f"[ATUALIZAÇÃO DE PROVA] Dados inválidos para {exam_id}: {e.code}")
        raise _validation_error(e) from e

    return ExamService.serialize(updated, await ExamService.get_owner_name(updated, db))


@router.delete("/delete/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(
        exam_id: str,
        db: AsyncSession = Depends(get_db),
        session: SessionContext = Depends(get_session)
):
    await ExamService.delete_exam(exam_id, session.actor, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _fetch_all_exams() -> List[dict]:
    async with AsyncSessionLocal() as db:
        return await ExamService.get_all_exams(db)


def _is_open(websocket: WebSocket) -> bool:
    return (websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED)


async def _send(websocket: WebSocket, payload: dict) -> None:
    if not _is_open(websocket):
        return
    await websocket.send_json(payload)


@router.websocket("/live")
async def exams_live(
        websocket: WebSocket,
        token: str = Query(""),
        user_id: Optional[str] = Query(None),
        provider: IdentityProvider = Depends(get_identity_provider)
):
    """
    Lista de provas ao vivo.

    Envia a lista completa ao conectar e após cada mudança na coleção. O
    cliente pode trocar o filtro enviando {"filter": "<id do usuário>"} ou
    {"filter": null}. Mensagens que não são JSON recebem {"type": "error"}.
    A conexão é fechada com o código 4401 quando o token é inválido, no
    logout e na remoção da conta.
    """
    async with AsyncSessionLocal() as db:
        session = await SessionContext(provider).start(db, token)

    if not session.active:
        session.close()
        await websocket.close(code=4401)
        return

    await websocket.accept()
    account_id = session.user.id
    email = session.user.email

    async def push(exams: List[dict]) -> None:
        if not session.active:
            return
        message = ExamListMessage(exams=[ExamResponse(**exam) for exam in exams])
        await _send(websocket, message.model_dump(mode="json"))

    async def notify(level: str, message: str) -> None:
        await _send(websocket, {"type": level, "message": message})

    view = ExamCollectionView(fetch=_fetch_all_exams, notify=notify, on_update=push, owner_id=user_id)

    async def end_session(change: AuthStateChange) -> None:
        if change.user_id != account_id or change.event not in (AuthEvent.SIGNED_OUT, AuthEvent.USER_DELETED):
            return
        logger.info(f"[PROVAS AO VIVO] Conexão de {email} encerrada por {change.event.value}")
        await view.close()
        if _is_open(websocket):
            await websocket.close(code=4401)

    subscription = provider.on_auth_state_change(end_session)

    async with session:
        try:
            async with view:
                while _is_open(websocket):
                    try:
                        data = await websocket.receive_json()
                    except ValueError:
                        logger.warning(f"[PROVAS AO VIVO] Mensagem inválida de {email}")
                        await notify("error", "Mensagem inválida")
                        continue
                    if isinstance(data, dict) and "filter" in data:
                        await view.set_filter(data["filter"])
        except WebSocketDisconnect:
            logger.info(f"[PROVAS AO VIVO] Cliente desconectado: {email}")
        finally:
            subscription.unsubscribe()
