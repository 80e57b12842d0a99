"""
Tests for ActionSubmitter - the outbound POST of a completed effect

The HTTP path runs against a local aiohttp test server.
"""

import asyncio
import contextlib
import logging

import aiohttp
import pytest
from aiohttp import test_utils, web

from effects.errors import UnconfiguredEndpointError
from effects.submitter import ActionSubmitter, build_endpoint_table
from models import EffectKind


@contextlib.asynccontextmanager
async def action_api(status=200, delay=0.0):
    """Local action API recording every request as (path, json body)."""
    received = []

    async def handle(request: web.Request) -> web.Response:
        received.append((request.path, await request.json()))
        if delay:
            await asyncio.sleep(delay)
        return web.json_response({"ok": status < 300}, status=status)

    app = web.Application()
    app.router.add_post("/play/{game_id}/actions/{slug}", handle)
    async with test_utils.TestServer(app) as server:
        yield str(server.make_url("")).rstrip("/"), received


class TestEndpointTable:
    """Default templates and overrides."""

    def test_defaults_cover_every_kind_but_select_set(self):
        """selectSet has no server route unless one is configured"""
        table = build_endpoint_table()
        assert set(table) == set(EffectKind) - {EffectKind.SELECT_SET}
        assert table[EffectKind.STEAL_SET] == "/play/:gameId/actions/steal-set"

    def test_override_enables_select_set(self):
        table = build_endpoint_table({"selectSet": "/play/:gameId/actions/select-set"})
        assert table[EffectKind.SELECT_SET] == "/play/:gameId/actions/select-set"

    def test_override_replaces_template(self):
        table = build_endpoint_table({"stealSet": "/v2/:gameId/steal"})
        assert table[EffectKind.STEAL_SET] == "/v2/:gameId/steal"

    def test_null_override_removes_endpoint(self):
        table = build_endpoint_table({"stealSet": None})
        assert EffectKind.STEAL_SET not in table

    def test_unknown_override_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            table = build_endpoint_table({"castFireball": "/x"})
        assert len(table) == len(EffectKind) - 1
        assert "castFireball" in caplog.text


class TestResolveEndpoint:
    """URL building."""

    def test_game_id_substituted(self):
        submitter = ActionSubmitter("http://api.test/", game_id=42)
        assert (
            submitter.resolve_endpoint(EffectKind.HIDE_SECRET)
            == "http://api.test/play/42/actions/hide-secret"
        )

    def test_missing_game_id_defaults_to_zero(self):
        submitter = ActionSubmitter("http://api.test")
        url = submitter.resolve_endpoint(EffectKind.STEAL_SET)
        assert url == "http://api.test/play/0/actions/steal-set"

    def test_brace_placeholder_and_absolute_template(self):
        submitter = ActionSubmitter(
            "http://api.test",
            game_id=7,
            endpoint_overrides={"selectSet": "http://other.test/play/{id}/actions/select-set"},
        )
        assert (
            submitter.resolve_endpoint(EffectKind.SELECT_SET)
            == "http://other.test/play/7/actions/select-set"
        )

    def test_unconfigured_raises(self):
        submitter = ActionSubmitter()
        assert not submitter.has_endpoint(EffectKind.SELECT_SET)
        with pytest.raises(UnconfiguredEndpointError):
            submitter.resolve_endpoint(EffectKind.SELECT_SET)


class TestSubmit:
    """POST behavior against a live local server."""

    @pytest.mark.asyncio
    async def test_successful_post(self):
        async with action_api() as (base_url, received):
            submitter = ActionSubmitter(base_url, game_id=42)
            try:
                result = await submitter.submit(
                    EffectKind.STEAL_SET, {"playerId": 1, "stolenPlayerId": 3, "setId": 202}
                )
            finally:
                await submitter.close()

        assert result.success
        assert result.status == 200
        assert received == [
            (
                "/play/42/actions/steal-set",
                {"event": "stealSet", "playerId": 1, "stolenPlayerId": 3, "setId": 202},
            )
        ]
        assert submitter.get_stats()["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_non_2xx_is_a_failed_result(self, caplog):
        async with action_api(status=409) as (base_url, received):
            submitter = ActionSubmitter(base_url, game_id=42)
            try:
                with caplog.at_level(logging.ERROR):
                    result = await submitter.submit(
                        EffectKind.SELECT_DIRECTION, {"playerId": 1, "direction": "left"}
                    )
            finally:
                await submitter.close()

        assert not result.success
        assert result.status == 409
        assert len(received) == 1
        assert "POST error" in caplog.text
        assert submitter.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_single_attempt_no_retry(self):
        async with action_api(status=503) as (base_url, received):
            submitter = ActionSubmitter(base_url, game_id=1)
            try:
                await submitter.submit(EffectKind.SELECT_ANY_PLAYER, {"playerId": 1})
            finally:
                await submitter.close()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_a_failed_result(self):
        async with action_api(delay=1.0) as (base_url, _):
            submitter = ActionSubmitter(base_url, game_id=1, timeout=0.1)
            try:
                result = await submitter.submit(EffectKind.SELECT_ANY_PLAYER, {"playerId": 1})
            finally:
                await submitter.close()

        assert not result.success
        assert result.error

    @pytest.mark.asyncio
    async def test_connection_error_is_a_failed_result(self):
        submitter = ActionSubmitter("http://127.0.0.1:1", game_id=1)
        try:
            result = await submitter.submit(EffectKind.SELECT_ANY_PLAYER, {"playerId": 1})
        finally:
            await submitter.close()

        assert not result.success
        assert result.status is None
        assert submitter.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_unconfigured_endpoint_skips_network(self, caplog):
        submitter = ActionSubmitter()

        with caplog.at_level(logging.WARNING):
            result = await submitter.submit(EffectKind.SELECT_SET, {"playerId": 1})

        assert not result.success
        assert result.attempted is False
        assert submitter._session is None
        assert "Skipping POST" in caplog.text
        assert submitter.get_stats()["unconfigured"] == 1


class TestSessionOwnership:
    @pytest.mark.asyncio
    async def test_shared_session_not_closed(self):
        async with aiohttp.ClientSession() as session:
            submitter = ActionSubmitter(session=session)
            await submitter.close()
            assert not session.closed

    @pytest.mark.asyncio
    async def test_owned_session_closed(self):
        submitter = ActionSubmitter()
        session = await submitter._get_session()
        await submitter.close()
        assert session.closed
