"""Session synchronizer: who is signed in, and what is their role.

One SessionSynchronizer is constructed per application session. It derives
{user, session, profile, role, is_loading} from two independent triggers:

  1. The mount sequence (`start()`): read the persisted session, re-validate
     its user with the provider (a user deleted upstream must not linger), then
     look up the profile by email.
  2. The provider's event stream: SignedOut, SessionRefreshed and NoUser
     arrive at any time, including while the mount sequence is still running.

The two can interleave. Instead of locks, every identity change or sign-out
bumps an epoch; a profile lookup remembers the epoch and email it was started
for and its result is dropped if either moved on. A lookup for an email that
is already resolved, or already in flight, is never issued a second time.

Lookup failures are logged and treated as "no profile". Nothing raised by the
provider or the lookup reaches callers; they only observe state changes.

Usage:
    async with SessionSynchronizer(provider, lookup_profile_by_email, redirect) as sync:
        snapshot = await sync.settled()
        if snapshot.role is Role.TEACHER:
            ...
        await sync.sign_out()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from schoolhub_shared.auth_models import AuthSnapshot, AuthUser, Profile, Session, SyncPhase

from schoolhub_auth.events import NoUser, SessionRefreshed, SignedOut, Subscription

logger = logging.getLogger(__name__)

ProfileLookup = Callable[[str], Awaitable[Profile | None]]
Redirect = Callable[[str], Awaitable[None] | None]
Listener = Callable[[AuthSnapshot], None]


class AuthProvider(Protocol):
    """What the synchronizer needs from an auth source (GoTrueAuthProvider in prod)."""

    async def get_session(self) -> Session | None: ...

    async def get_user(self, session: Session) -> AuthUser: ...

    async def sign_out(self, scope: str = "global") -> None: ...

    def subscribe(self) -> Subscription: ...


class SessionSynchronizer:
    def __init__(
        self,
        provider: AuthProvider,
        lookup_profile: ProfileLookup,
        redirect: Redirect | None = None,
        home_path: str = "/",
    ) -> None:
        self._provider = provider
        self._lookup_profile = lookup_profile
        self._redirect = redirect
        self._home_path = home_path

        self._state = AuthSnapshot()
        self._listeners: list[Listener] = []
        self._settled = asyncio.Event()

        self._epoch = 0
        self._pending_email: str | None = None
        self._resolved_email: str | None = None

        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task | None = None
        self._lookups: set[asyncio.Task] = set()
        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with every new snapshot. Returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def settled(self) -> AuthSnapshot:
        """Wait until nothing is loading. Only meaningful after start()."""
        await self._settled.wait()
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to provider events, then run the mount sequence to completion."""
        if self._started:
            raise RuntimeError("SessionSynchronizer already started")
        self._started = True
        self._subscription = self._provider.subscribe()
        self._consumer = asyncio.create_task(self._consume(self._subscription))
        await self.initialize()

    async def stop(self) -> None:
        """Unsubscribe and cancel the consumer and any in-flight lookups."""
        if self._closed:
            return
        self._closed = True
        self._epoch += 1

        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        tasks = [t for t in (self._consumer, *self._lookups) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumer = None
        self._lookups.clear()
        self._listeners.clear()

    async def __aenter__(self) -> SessionSynchronizer:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Mount sequence
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        epoch = self._epoch
        self._set(phase=SyncPhase.VALIDATING, is_loading=True)

        try:
            session = await self._provider.get_session()
        except Exception:
            logger.exception("Could not read the persisted session")
            session = None

        if epoch != self._epoch:
            return  # an event already took over
        if session is None:
            self._clear()
            return

        try:
            user = await self._provider.get_user(session)
        except Exception as e:
            if epoch == self._epoch:
                logger.warning("Persisted session failed re-validation, signing out: %s", e)
                await self._force_local_sign_out()
            return

        if epoch != self._epoch:
            return

        session = session.model_copy(update={"user": user})
        self._adopt(session, user)
        ticket = self._begin_lookup(user)
        if ticket is not None:
            await self._finish_lookup(*ticket)

    async def _force_local_sign_out(self) -> None:
        self._clear()
        try:
            await self._provider.sign_out(scope="local")
        except Exception:
            logger.exception("Clearing the stored session failed")

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("Failed to apply auth event '%s'", event.kind)

    async def handle_event(self, event: SignedOut | SessionRefreshed | NoUser) -> None:
        """Apply one provider event. Lookups it triggers run in the background."""
        if self._closed:
            return

        match event:
            case SignedOut():
                was_signed_in = self._state.user is not None
                self._clear()
                if was_signed_in:
                    await self._go_home()
            case SessionRefreshed(session=session) if session.user is not None:
                self._adopt(session, session.user)
                ticket = self._begin_lookup(session.user)
                if ticket is not None:
                    task = asyncio.create_task(self._finish_lookup(*ticket))
                    self._lookups.add(task)
                    task.add_done_callback(self._lookups.discard)
            case _:
                self._clear()

    # ------------------------------------------------------------------
    # Explicit sign-out
    # ------------------------------------------------------------------

    async def sign_out(self) -> None:
        """Clear everything, tell the provider, redirect home. Never raises."""
        self._clear()
        try:
            await self._provider.sign_out()
        except Exception:
            logger.exception("Remote sign-out failed; local session already cleared")
        await self._go_home()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _adopt(self, session: Session, user: AuthUser) -> None:
        """Make session/user current. A different identity drops the old profile."""
        current = self._state.user
        if current is not None and current.user_id == user.user_id and current.email == user.email:
            self._set(user=user, session=session)
            return

        self._epoch += 1
        self._pending_email = None
        self._resolved_email = None
        self._set(
            user=user,
            session=session,
            profile=None,
            role=None,
            phase=SyncPhase.PROFILE_LOADING,
            is_loading=True,
        )

    def _begin_lookup(self, user: AuthUser) -> tuple[str, int] | None:
        """Guard and mark a profile lookup. Returns (email, epoch) if one must run."""
        email = user.email
        if not email:
            self._resolved_email = None
            self._set(profile=None, role=None, phase=SyncPhase.READY, is_loading=False)
            return None
        if self._resolved_email == email:
            self._set(phase=SyncPhase.READY, is_loading=False)
            return None
        if self._pending_email == email:
            return None

        self._pending_email = email
        self._set(phase=SyncPhase.PROFILE_LOADING, is_loading=True)
        return email, self._epoch

    async def _finish_lookup(self, email: str, epoch: int) -> None:
        resolved = True
        try:
            profile = await self._lookup_profile(email)
        except Exception:
            logger.exception("Profile lookup failed for %s", email)
            profile = None
            resolved = False

        if self._closed or epoch != self._epoch or self._pending_email != email:
            logger.debug("Discarding stale profile lookup for %s", email)
            return

        self._pending_email = None
        self._resolved_email = email if resolved else None
        self._set(
            profile=profile,
            role=profile.role if profile is not None else None,
            phase=SyncPhase.READY,
            is_loading=False,
        )

    def _clear(self) -> None:
        self._epoch += 1
        self._pending_email = None
        self._resolved_email = None
        self._set(
            user=None,
            session=None,
            profile=None,
            role=None,
            phase=SyncPhase.SIGNED_OUT,
            is_loading=False,
        )

    def _set(self, **changes: Any) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state.is_loading:
            self._settled.clear()
        else:
            self._settled.set()
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Auth state listener failed")

    async def _go_home(self) -> None:
        if self._redirect is None:
            return
        try:
            result = self._redirect(self._home_path)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Redirect to %s failed", self._home_path)
