"""Tests for the SessionSynchronizer.

Covers the mount sequence, the event stream, explicit sign-out, and the races
between them. Race tests park a profile lookup on a gate, deliver events
while it is in flight, then release it and check the late result is dropped.
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from schoolhub_auth.errors import SessionInvalidError
from schoolhub_auth.events import NoUser, SessionRefreshed, SignedOut
from schoolhub_auth.sync import SessionSynchronizer
from schoolhub_shared.auth_models import AuthSnapshot, Role, SyncPhase

TEACHER_EMAIL = "teacher@x.edu"
STUDENT_EMAIL = "student@x.edu"


def _assert_signed_out(snapshot: AuthSnapshot) -> None:
    assert snapshot.user is None
    assert snapshot.session is None
    assert snapshot.profile is None
    assert snapshot.role is None
    assert snapshot.is_loading is False
    assert snapshot.phase is SyncPhase.SIGNED_OUT


# ============================================================================
# Mount sequence
# ============================================================================


class TestMount:
    async def test_initial_snapshot_is_loading(self, provider_factory, lookup):
        sync = SessionSynchronizer(provider_factory(), lookup)
        assert sync.snapshot.phase is SyncPhase.UNINITIALIZED
        assert sync.snapshot.is_loading is True

    async def test_no_persisted_session_signs_out(self, provider_factory, lookup):
        provider = provider_factory()
        async with SessionSynchronizer(provider, lookup) as sync:
            _assert_signed_out(sync.snapshot)
        assert lookup.calls == []
        assert provider.get_user_calls == 0

    async def test_teacher_session_resolves_teacher_role(
        self, provider_factory, lookup, teacher_user, teacher_profile, session_for
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup) as sync:
            snapshot = sync.snapshot

        assert snapshot.role is Role.TEACHER
        assert snapshot.profile == teacher_profile
        assert snapshot.user == teacher_user
        assert snapshot.session is not None
        assert snapshot.session.user == teacher_user
        assert snapshot.phase is SyncPhase.READY
        assert snapshot.is_loading is False
        assert lookup.calls == [TEACHER_EMAIL]

    async def test_deleted_user_is_fully_signed_out(
        self, provider_factory, lookup, teacher_user, session_for, redirect
    ):
        provider = provider_factory(
            session=session_for(teacher_user),
            user_error=SessionInvalidError("User from sub claim in JWT does not exist"),
        )
        async with SessionSynchronizer(provider, lookup, redirect) as sync:
            _assert_signed_out(sync.snapshot)

        assert provider.sign_out_calls == ["local"]
        assert provider.session is None
        assert lookup.calls == []

    async def test_revalidation_error_never_reaches_ready(
        self, provider_factory, lookup, teacher_user, session_for
    ):
        provider = provider_factory(
            session=session_for(teacher_user), user_error=RuntimeError("network down")
        )
        phases: list[SyncPhase] = []
        sync = SessionSynchronizer(provider, lookup)
        sync.subscribe(lambda s: phases.append(s.phase))
        async with sync:
            pass

        assert SyncPhase.READY not in phases
        assert phases[-1] is SyncPhase.SIGNED_OUT

    async def test_missing_profile_row_is_ready_without_role(
        self, provider_factory, teacher_user, session_for
    ):
        async def no_rows(email: str):
            return None

        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, no_rows) as sync:
            snapshot = sync.snapshot

        assert snapshot.user == teacher_user
        assert snapshot.profile is None
        assert snapshot.role is None
        assert snapshot.phase is SyncPhase.READY
        assert snapshot.is_loading is False

    async def test_lookup_failure_is_logged_and_degrades(
        self, provider_factory, lookup, teacher_user, session_for, caplog
    ):
        lookup.error = ConnectionError("pooler unavailable")
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)

        with caplog.at_level(logging.ERROR, logger="schoolhub_auth.sync"):
            async with SessionSynchronizer(provider, lookup) as sync:
                snapshot = sync.snapshot

        assert snapshot.phase is SyncPhase.READY
        assert snapshot.is_loading is False
        assert snapshot.profile is None
        assert snapshot.role is None
        assert "Profile lookup failed" in caplog.text

    async def test_session_read_failure_signs_out(self, provider_factory, lookup):
        provider = provider_factory()

        async def broken():
            raise OSError("store offline")

        provider.get_session = broken
        async with SessionSynchronizer(provider, lookup) as sync:
            _assert_signed_out(sync.snapshot)

    async def test_start_twice_raises(self, provider_factory, lookup):
        async with SessionSynchronizer(provider_factory(), lookup) as sync:
            with pytest.raises(RuntimeError, match="already started"):
                await sync.start()


# ============================================================================
# Event stream
# ============================================================================


class TestEvents:
    async def test_sign_in_event_loads_profile(
        self, provider_factory, lookup, student_user, session_for, settle
    ):
        provider = provider_factory()
        async with SessionSynchronizer(provider, lookup) as sync:
            provider.channel.publish(SessionRefreshed(session=session_for(student_user)))
            await settle()
            snapshot = await sync.settled()

        assert snapshot.role is Role.STUDENT
        assert snapshot.user == student_user
        assert snapshot.phase is SyncPhase.READY

    async def test_refresh_for_resolved_email_skips_lookup(
        self, provider_factory, lookup, teacher_user, session_for, settle
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup) as sync:
            refreshed = session_for(teacher_user, token="access-2")
            provider.channel.publish(SessionRefreshed(session=refreshed))
            provider.channel.publish(SessionRefreshed(session=refreshed))
            await settle()
            snapshot = sync.snapshot

        assert lookup.calls == [TEACHER_EMAIL]
        assert snapshot.session.access_token == "access-2"
        assert snapshot.role is Role.TEACHER
        assert snapshot.is_loading is False

    async def test_overlapping_triggers_issue_one_lookup(
        self, provider_factory, lookup, teacher_user, session_for, settle, until
    ):
        gate = lookup.hold(TEACHER_EMAIL)
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        sync = SessionSynchronizer(provider, lookup)

        mount = asyncio.create_task(sync.start())
        await until(lambda: lookup.calls)
        provider.channel.publish(SessionRefreshed(session=session_for(teacher_user, "access-2")))
        await settle()
        assert sync.snapshot.is_loading is True

        gate.set()
        await mount
        await settle()

        assert lookup.calls == [TEACHER_EMAIL]
        assert sync.snapshot.role is Role.TEACHER
        await sync.stop()

    async def test_sign_out_event_clears_and_redirects(
        self, provider_factory, lookup, teacher_user, session_for, redirect, settle
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup, redirect, home_path="/") as sync:
            provider.channel.publish(SignedOut())
            await settle()
            _assert_signed_out(sync.snapshot)

        assert redirect.paths == ["/"]

    async def test_no_user_event_clears_without_redirect(
        self, provider_factory, lookup, teacher_user, session_for, redirect, settle
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup, redirect) as sync:
            provider.channel.publish(NoUser())
            await settle()
            _assert_signed_out(sync.snapshot)

        assert redirect.paths == []

    async def test_sign_out_event_during_lookup_discards_late_result(
        self, provider_factory, lookup, teacher_user, session_for, redirect, settle, until
    ):
        gate = lookup.hold(TEACHER_EMAIL)
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        sync = SessionSynchronizer(provider, lookup, redirect)

        mount = asyncio.create_task(sync.start())
        await until(lambda: lookup.calls)
        provider.channel.publish(SignedOut())
        await settle()
        _assert_signed_out(sync.snapshot)

        gate.set()
        await mount
        await settle()

        _assert_signed_out(sync.snapshot)
        assert redirect.paths == ["/"]
        await sync.stop()

    async def test_user_change_drops_stale_lookup(
        self,
        provider_factory,
        lookup,
        teacher_user,
        student_user,
        student_profile,
        session_for,
        settle,
        until,
    ):
        gate = lookup.hold(TEACHER_EMAIL)
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        sync = SessionSynchronizer(provider, lookup)

        mount = asyncio.create_task(sync.start())
        await until(lambda: lookup.calls)
        provider.channel.publish(SessionRefreshed(session=session_for(student_user, "s-1")))
        await settle()
        assert sync.snapshot.role is Role.STUDENT

        gate.set()
        await mount
        await settle()

        assert sync.snapshot.user == student_user
        assert sync.snapshot.profile == student_profile
        assert sync.snapshot.role is Role.STUDENT
        await sync.stop()

    @pytest.mark.parametrize(
        "sequence",
        [
            [TEACHER_EMAIL, STUDENT_EMAIL],
            [STUDENT_EMAIL, None, TEACHER_EMAIL],
            [TEACHER_EMAIL, STUDENT_EMAIL, TEACHER_EMAIL],
            [TEACHER_EMAIL, None],
            [STUDENT_EMAIL, TEACHER_EMAIL, None],
            [None, STUDENT_EMAIL],
        ],
    )
    async def test_final_state_follows_last_event(
        self, provider_factory, lookup, teacher_user, student_user, session_for, settle, sequence
    ):
        users = {TEACHER_EMAIL: teacher_user, STUDENT_EMAIL: student_user}
        provider = provider_factory()
        async with SessionSynchronizer(provider, lookup) as sync:
            for i, email in enumerate(sequence):
                if email is None:
                    provider.channel.publish(SignedOut())
                else:
                    session = session_for(users[email], token=f"t-{i}")
                    provider.channel.publish(SessionRefreshed(session=session))
            await settle()
            snapshot = await sync.settled()

        last = sequence[-1]
        if last is None:
            _assert_signed_out(snapshot)
        else:
            assert snapshot.user == users[last]
            assert snapshot.profile is not None
            assert snapshot.profile.email == last
            assert snapshot.role is (Role.TEACHER if last == TEACHER_EMAIL else Role.STUDENT)


# ============================================================================
# Explicit sign-out
# ============================================================================


class TestSignOut:
    async def test_sign_out_clears_state_and_redirects_once(
        self, provider_factory, lookup, teacher_user, session_for, redirect, settle
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup, redirect) as sync:
            await sync.sign_out()
            _assert_signed_out(sync.snapshot)
            await settle()
            _assert_signed_out(sync.snapshot)

        assert provider.sign_out_calls == ["global"]
        assert redirect.paths == ["/"]

    async def test_remote_failure_still_clears(
        self, provider_factory, lookup, teacher_user, session_for, redirect
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        provider.sign_out_error = ConnectionError("GoTrue unreachable")
        async with SessionSynchronizer(provider, lookup, redirect) as sync:
            await sync.sign_out()
            _assert_signed_out(sync.snapshot)

        assert redirect.paths == ["/"]

    async def test_sign_out_during_lookup_wins(
        self, provider_factory, lookup, teacher_user, session_for, settle, until
    ):
        gate = lookup.hold(TEACHER_EMAIL)
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        sync = SessionSynchronizer(provider, lookup)

        mount = asyncio.create_task(sync.start())
        await until(lambda: lookup.calls)
        await sync.sign_out()
        gate.set()
        await mount
        await settle()

        _assert_signed_out(sync.snapshot)
        await sync.stop()

    async def test_sync_redirect_callable_is_supported(
        self, provider_factory, lookup, teacher_user, session_for
    ):
        paths: list[str] = []
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup, paths.append, home_path="/login") as sync:
            await sync.sign_out()
        assert paths == ["/login"]

    async def test_failing_redirect_is_logged_not_raised(
        self, provider_factory, lookup, teacher_user, session_for, caplog
    ):
        async def broken_redirect(path: str) -> None:
            raise RuntimeError("router gone")

        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        async with SessionSynchronizer(provider, lookup, broken_redirect) as sync:
            with caplog.at_level(logging.ERROR, logger="schoolhub_auth.sync"):
                await sync.sign_out()
            _assert_signed_out(sync.snapshot)

        assert provider.sign_out_calls == ["global"]
        assert "Redirect to / failed" in caplog.text


# ============================================================================
# Listeners and lifecycle
# ============================================================================


class TestLifecycle:
    async def test_listeners_see_every_transition(
        self, provider_factory, lookup, teacher_user, session_for
    ):
        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        seen: list[SyncPhase] = []
        sync = SessionSynchronizer(provider, lookup)
        unsubscribe = sync.subscribe(lambda s: seen.append(s.phase))
        await sync.start()

        assert seen == [SyncPhase.VALIDATING, SyncPhase.PROFILE_LOADING, SyncPhase.READY]

        unsubscribe()
        await sync.sign_out()
        assert seen[-1] is SyncPhase.READY
        await sync.stop()

    async def test_failing_listener_does_not_break_sync(
        self, provider_factory, lookup, teacher_user, session_for
    ):
        def boom(snapshot):
            raise ValueError("listener bug")

        provider = provider_factory(session=session_for(teacher_user), user=teacher_user)
        sync = SessionSynchronizer(provider, lookup)
        sync.subscribe(boom)
        async with sync:
            assert sync.snapshot.role is Role.TEACHER

    async def test_stop_unsubscribes_and_ignores_later_events(
        self, provider_factory, lookup, student_user, session_for, settle
    ):
        provider = provider_factory()
        sync = SessionSynchronizer(provider, lookup)
        await sync.start()
        assert provider.channel.subscriber_count == 1

        await sync.stop()
        assert provider.channel.subscriber_count == 0

        provider.channel.publish(SessionRefreshed(session=session_for(student_user)))
        await sync.handle_event(SessionRefreshed(session=session_for(student_user)))
        await settle()
        _assert_signed_out(sync.snapshot)
        assert lookup.calls == []

    async def test_stop_cancels_in_flight_lookup(
        self, provider_factory, lookup, student_user, session_for, settle, until
    ):
        lookup.hold(STUDENT_EMAIL)
        provider = provider_factory()
        sync = SessionSynchronizer(provider, lookup)
        await sync.start()

        provider.channel.publish(SessionRefreshed(session=session_for(student_user)))
        await until(lambda: lookup.calls)
        await sync.stop()

        assert sync.snapshot.profile is None
