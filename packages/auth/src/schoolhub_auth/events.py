"""Auth events and the channel that delivers them.

GoTrue clients report sign-in, token refresh, and sign-out as loosely named
string events. Here every event is one of three tagged variants, and
subscribers receive them over an explicit channel:

    subscription = channel.subscribe()
    async for event in subscription:
        match event:
            case SignedOut(): ...
            case SessionRefreshed(session=session): ...
            case NoUser(): ...
    subscription.unsubscribe()

Each subscription owns an unbounded asyncio.Queue, so publishing never
blocks the provider and every subscriber sees every event in order.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from schoolhub_shared.auth_models import Session


class SignedOut(BaseModel):
    """The session was ended (explicit sign-out, revocation, or local clear)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["signed_out"] = "signed_out"


class SessionRefreshed(BaseModel):
    """A session with a user became current (sign-in or token refresh)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["session_refreshed"] = "session_refreshed"
    session: Session


class NoUser(BaseModel):
    """The provider reported a state change that carries no user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["no_user"] = "no_user"


AuthEvent = Annotated[SignedOut | SessionRefreshed | NoUser, Field(discriminator="kind")]


def event_for_session(session: Session | None) -> SessionRefreshed | NoUser:
    """Classify a provider callback payload."""
    if session is None or session.user is None:
        return NoUser()
    return SessionRefreshed(session=session)


_CLOSED = object()


class Subscription:
    """One subscriber's view of the channel. Async-iterable until unsubscribed."""

    def __init__(self, channel: AuthEventChannel) -> None:
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: object) -> None:
        self._queue.put_nowait(event)

    def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._channel._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> SignedOut | SessionRefreshed | NoUser:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class AuthEventChannel:
    """Fan-out of auth events to every live subscription."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: SignedOut | SessionRefreshed | NoUser) -> None:
        for subscription in list(self._subscriptions):
            subscription._deliver(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
