from datetime import date
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.schemas.exam import CreateExam, UpdateExam
from app.core.logger import logger
from app.models import Account, Exam
from app.utils.realtime import ChangeEvent, ChangeType, exam_changes
from app.utils.roles import Actor, can_edit_exam
from app.utils.validation import validate_exam


def _exam_to_dict(exam: Exam, owner_name: Optional[str] = None) -> dict:
    return {
        "id": exam.id,
        "user_id": exam.user_id,
        "exam_date": exam.exam_date,
        "subject": exam.subject,
        "shift": exam.shift,
        "owner_name": owner_name,
    }


async def _publish(change_type: ChangeType, exam: Exam) -> None:
    await exam_changes.publish(
        ChangeEvent(table="exams", type=change_type, record_id=exam.id, user_id=exam.user_id)
    )


class ExamService:
    @staticmethod
    async def get_all_exams(db: AsyncSession, owner_id: Optional[str] = None) -> List[dict]:
        """
        Lista todas as provas em ordem crescente de data, com o nome do dono.

        Args:
            db: Sessão assíncrona do SQLAlchemy
            owner_id: Restringe às provas de uma conta; None traz todas

        Returns:
            List[dict]: Provas serializadas

        Raises:
            HTTPException: 500 - Erro ao consultar o banco
        """
        try:
            stmt = (
                select(Exam, Account.name)
                .join(Account, Account.id == Exam.user_id)
                .order_by(Exam.exam_date.asc(), Exam.created_at.asc())
            )
            if owner_id:
                stmt = stmt.where(Exam.user_id == owner_id)

            result = await db.execute(stmt)
            exams = [_exam_to_dict(exam, owner_name) for exam, owner_name in result.all()]

            logger.info(f"[LISTAGEM DE PROVAS] {len(exams)} provas encontradas")
            return exams

        except SQLAlchemyError as e:
            logger.error(f"[LISTAGEM DE PROVAS] Erro ao carregar provas: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Erro ao carregar provas"
            ) from e

    @staticmethod
    async def get_editable_exam(exam_id: str, actor: Actor, db: AsyncSession) -> Exam:
        """
        Busca a prova e confere se o usuário pode alterá-la.

        Raises:
            HTTPException: 404 - Prova não encontrada
            HTTPException: 403 - Usuário sem permissão
            HTTPException: 500 - Erro ao consultar o banco
        """
        try:
            exam = await db.get(Exam, exam_id)
        except SQLAlchemyError as e:
            logger.error(f"[CONSULTA DE PROVA] Erro ao carregar prova {exam_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Erro ao carregar prova"
            ) from e

        if not exam:
            logger.warning(f"[CONSULTA DE PROVA] Prova não encontrada: {exam_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Prova não encontrada"
            )

        if not can_edit_exam(actor, exam):
            logger.warning(f"[CONSULTA DE PROVA] Usuário {actor.id} sem permissão para a prova {exam_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Você não tem permissão para editar esta prova"
            )

        return exam

    @staticmethod
    async def create_exam(exam_data: CreateExam, actor: Actor, db: AsyncSession, today: Optional[date] = None) -> Exam:
        """
        Cria uma prova para o próprio usuário.

        Args:
            exam_data: Data, matéria e turno
            actor: Usuário autenticado, dono da nova prova
            db: Sessão assíncrona do SQLAlchemy
            today: Data de referência da regra de antecedência

        Returns:
            Exam: Prova criada

        Raises:
            ValidationError: Dados fora das regras
            HTTPException: 500 - Erro ao gravar
        """
        exam_date, subject, shift = validate_exam(
            exam_data.exam_date, exam_data.subject, exam_data.shift, today or date.today()
        )

        try:
            new_exam = Exam(user_id=actor.id, exam_date=exam_date, subject=subject, shift=shift.value)
            db.add(new_exam)
            await db.commit()
            await db.refresh(new_exam)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[CRIAÇÃO DE PROVA] Erro ao criar prova: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Erro ao cadastrar prova"
            ) from e

        logger.info(f"[CRIAÇÃO DE PROVA] Prova {new_exam.id} criada por {actor.id}: {subject}")
        await _publish(ChangeType.INSERT, new_exam)
        return new_exam

    @staticmethod
    async def update_exam(
            exam_id: str,
            exam_data: UpdateExam,
            actor: Actor,
            db: AsyncSession,
            today: Optional[date] = None
    ) -> Exam:
        exam = await ExamService.get_editable_exam(exam_id, actor, db)
        exam_date, subject, shift = validate_exam(
            exam_data.exam_date, exam_data.subject, exam_data.shift, today or date.today()
        )

        try:
            exam.exam_date = exam_date
            exam.subject = subject
            exam.shift = shift.value
            await db.commit()
            await db.refresh(exam)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[ATUALIZAÇÃO DE PROVA] Erro ao atualizar prova {exam_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Erro ao atualizar prova"
            ) from e

        logger.info(f"[ATUALIZAÇÃO DE PROVA] Prova {exam_id} atualizada por {actor.id}")
        await _publish(ChangeType.UPDATE, exam)
        return exam

    @staticmethod
    async def delete_exam(exam_id: str, actor: Actor, db: AsyncSession) -> None:
        exam = await ExamService.get_editable_exam(exam_id, actor, db)

        try:
            await db.delete(exam)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[EXCLUSÃO DE PROVA] Erro ao excluir prova {exam_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Erro ao excluir prova"
            ) from e

        logger.info(f"[EXCLUSÃO DE PROVA] Prova {exam_id} excluída por {actor.id}")
        await _publish(ChangeType.DELETE, exam)

    @staticmethod
    async def get_owner_name(exam: Exam, db: AsyncSession) -> Optional[str]:
        account = await db.get(Account, exam.user_id)
        return account.name if account else None

    @staticmethod
    def serialize(exam: Exam, owner_name: Optional[str] = None) -> dict:
        return _exam_to_dict(exam, owner_name)
