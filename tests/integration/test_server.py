"""Integration tests for the HealthLens MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from healthlens.core.config.settings import Settings
from healthlens.core.server.app import SERVER_NAME, create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    blocks = getattr(result, "content", result)
    return json.loads(blocks[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "record_vital_sign",
    "record_journal_entry",
    "delete_health_record",
    "delete_all_health_data",
    "purge_expired_insights",
    "health_insights",
    "health_insights_summary",
    "health_score",
    "health_trends",
    "refresh_health_insights",
    "insights_cache_stats",
    "reset_insights_cache_stats",
    "audit_summary",
]


@pytest.fixture
def client(settings, health_repository, health_db, clock):
    mcp = create_app(
        settings_override=settings,
        repository_override=health_repository,
        database_override=health_db,
        clock=clock,
    )
    return Client(mcp)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    async def _check():
        async with client:
            return _payload(await client.call_tool("health_check", {}))
    status = _run(_check())
    assert status["status"] == "ok"
    assert status["server"] == SERVER_NAME
    assert status["storage_enabled"] is True
    assert status["insights_enabled"] is True
    assert status["records_stored"] == 0
    assert status["cache"]["total"] == 0


def test_health_check_counts_records_on_shared_connection(client):
    """health_check reads the same SQLite connection the entry tools write through."""
    async def _check():
        async with client:
            await client.call_tool("record_vital_sign", {
                "vital_type": "heart_rate", "value": 64,
            })
            result = await client.call_tool("health_check", {})
            return result, _payload(result)
    result, status = _run(_check())
    assert not getattr(result, "is_error", False)
    assert status["records_stored"] == 1


def test_record_then_analyze(client):
    """Entries written through the tools feed the insights engine."""
    async def _check():
        async with client:
            for day in range(1, 4):
                await client.call_tool("record_vital_sign", {
                    "vital_type": "heart_rate", "value": 72,
                    "recorded_at": f"2026-02-2{day}T08:00:00Z",
                })
            await client.call_tool("record_journal_entry", {
                "sleep_hours": 8, "recorded_at": "2026-02-27T08:00:00Z",
            })
            score = _payload(await client.call_tool("health_score", {}))
            check = _payload(await client.call_tool("health_check", {}))
            return score, check
    score, check = _run(_check())
    assert score["components"]["heartRate"]["score"] == 100
    assert score["components"]["sleep"]["score"] == 100
    assert check["records_stored"] == 4


def test_without_encryption_key_only_health_check(monkeypatch):
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    client = Client(create_app(settings_override=Settings(_env_file=None)))

    async def _check():
        async with client:
            names = [t.name for t in await client.list_tools()]
            status = _payload(await client.call_tool("health_check", {}))
            return names, status
    names, status = _run(_check())
    assert names == ["health_check"]
    assert status["storage_enabled"] is False
    assert "records_stored" not in status


def test_file_backed_server(tmp_path, monkeypatch):
    from cryptography.fernet import Fernet

    monkeypatch.setenv("ENCRYPTION_KEY", Fernet.generate_key().decode())
    monkeypatch.setenv("DB_PATH", str(tmp_path / "bank" / "health.db"))
    client = Client(create_app(settings_override=Settings(_env_file=None)))

    async def _check():
        async with client:
            return _payload(await client.call_tool("health_check", {}))
    assert _run(_check())["insights_enabled"] is True
    assert (tmp_path / "bank" / "health.db").exists()
