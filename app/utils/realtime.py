import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from app.core.logger import logger

Callback = Callable[[Any], Union[None, Awaitable[None]]]


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeEvent:
    table: str
    type: ChangeType
    record_id: str
    user_id: Optional[str] = None
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription:
    def __init__(self, broker: "Broker", callback: Callback):
        self._broker = broker
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._broker._remove(self)
            self.active = False


class Broker:
    """
    Canal de notificações em processo.

    Cada assinante registra um único callback (síncrono ou assíncrono), chamado
    uma vez por evento publicado. Não há deduplicação nem garantia de ordem
    entre publicações concorrentes.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: Callback) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        logger.debug(f"[TEMPO REAL] Nova assinatura em '{self.name}' ({len(self._subscriptions)} ativas)")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(f"[TEMPO REAL] Assinatura removida de '{self.name}' ({len(self._subscriptions)} ativas)")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: Any) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[TEMPO REAL] Falha no assinante de '{self.name}': {str(e)}")


exam_changes = Broker("exams")

