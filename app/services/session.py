from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logger import logger
from app.models import Account
from app.services.identity import AuthEvent, AuthStateChange, IdentityProvider, ProviderError
from app.utils.realtime import Subscription
from app.utils.roles import Actor, is_admin


class SessionContext:
    """
    Estado de autenticação de um consumidor (requisição HTTP ou websocket).

    Ciclo de vida: ``start`` carrega usuário e papel, cada evento de
    autenticação publicado pelo provedor atualiza o estado, ``close`` encerra a
    assinatura. Também pode ser usado com ``async with``.
    """

    def __init__(self, provider: IdentityProvider):
        self.provider = provider
        self.token: Optional[str] = None
        self.user: Optional[Account] = None
        self.is_admin = False
        self.loading = True
        self._subscription: Optional[Subscription] = None

    async def start(self, db: AsyncSession, token: Optional[str]) -> "SessionContext":
        self._subscription = self.provider.on_auth_state_change(self._on_auth_state_change)
        self.token = token

        user = None
        if token:
            try:
                user = await self.provider.get_user(db, token)
            except ProviderError as e:
                logger.error(f"[SESSÃO] Não foi possível resolver a sessão: {str(e)}")

        self.user = user
        self.is_admin = await is_admin(self.provider, db, user.id) if user else False
        self.loading = False
        return self

    def _on_auth_state_change(self, change: AuthStateChange) -> None:
        if self.user is None or change.user_id != self.user.id:
            return
        if change.event in (AuthEvent.SIGNED_OUT, AuthEvent.USER_DELETED):
            logger.info(f"[SESSÃO] Sessão de {self.user.email} encerrada por {change.event.value}")
            self.user = None
            self.token = None
            self.is_admin = False

    @property
    def active(self) -> bool:
        return self.user is not None

    @property
    def actor(self) -> Actor:
        if self.user is None:
            raise RuntimeError("Sessão sem usuário autenticado")
        return Actor(id=self.user.id, is_admin=self.is_admin)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> "SessionContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
