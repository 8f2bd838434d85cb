import inspect
from typing import Any, Awaitable, Callable, List, Optional, Union

from app.core.logger import logger
from app.utils.realtime import Broker, Subscription, exam_changes

Fetcher = Callable[[], Awaitable[List[dict]]]
Remover = Callable[[str], Awaitable[Any]]
Notifier = Callable[[str, str], Any]
Confirm = Callable[[], Union[bool, Awaitable[bool]]]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class ExamCollectionView:
    """
    Lista de provas mantida em memória por um consumidor.

    A cada notificação de mudança a lista completa é buscada de novo e
    substitui a anterior. O filtro por dono é aplicado só na leitura de
    ``visible``.
    """

    def __init__(
            self,
            fetch: Fetcher,
            broker: Broker = exam_changes,
            remove: Optional[Remover] = None,
            notify: Optional[Notifier] = None,
            on_update: Optional[Callable[[List[dict]], Any]] = None,
            owner_id: Optional[str] = None
    ):
        self._fetch = fetch
        self._broker = broker
        self._remove = remove
        self._notify = notify
        self._on_update = on_update
        self._subscription: Optional[Subscription] = None
        self.owner_id = owner_id
        self.exams: List[dict] = []
        self.loading = False

    @property
    def visible(self) -> List[dict]:
        if not self.owner_id:
            return list(self.exams)
        return [exam for exam in self.exams if exam["user_id"] == self.owner_id]

    async def _emit(self, level: str, message: str) -> None:
        if self._notify is not None:
            await _maybe_await(self._notify(level, message))

    async def open(self) -> "ExamCollectionView":
        await self.refresh()
        self._subscription = self._broker.subscribe(self._on_change)
        return self

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def _on_change(self, event) -> None:
        await self.refresh()

    async def refresh(self) -> bool:
        """Busca a lista completa; em caso de erro mantém o estado anterior."""
        self.loading = True
        try:
            exams = await self._fetch()
        except Exception as e:
            logger.error(f"[LISTA DE PROVAS] Erro ao carregar provas: {str(e)}")
            await self._emit("error", "Erro ao carregar provas")
            return False
        finally:
            self.loading = False

        self.exams = list(exams)
        if self._on_update is not None:
            await _maybe_await(self._on_update(self.visible))
        return True

    async def set_filter(self, owner_id: Optional[str]) -> None:
        self.owner_id = owner_id or None
        if self._on_update is not None:
            await _maybe_await(self._on_update(self.visible))

    async def delete(self, exam_id: str, confirm: Confirm) -> bool:
        """
        Exclui a prova se ``confirm`` aprovar.

        Returns:
            bool: True se a exclusão foi enviada e concluída
        """
        if self._remove is None:
            raise RuntimeError("Visão sem operação de exclusão configurada")
        if not await _maybe_await(confirm()):
            return False

        try:
            await self._remove(exam_id)
        except Exception as e:
            logger.error(f"[LISTA DE PROVAS] Erro ao excluir prova {exam_id}: {str(e)}")
            await self._emit("error", "Erro ao excluir prova")
            return False

        await self._emit("success", "Prova excluída com sucesso")
        await self.refresh()
        return True

    async def __aenter__(self) -> "ExamCollectionView":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
