"""HealthLens MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from fastmcp import FastMCP

from healthlens.core.audit.logger import AuditLogger
from healthlens.core.config.settings import Settings, get_settings
from healthlens.core.storage.database import HealthDatabase
from healthlens.core.storage.encryption import EncryptionError, FieldEncryptor
from healthlens.core.storage.repository import HealthRepository
from healthlens.domains.health.connectors import HealthDataSource
from healthlens.domains.health.connectors.repository_source import (
    RepositoryDataSource,
    utc_now,
)
from healthlens.domains.health.engine.cache import SnapshotCache
from healthlens.domains.health.engine.insights_engine import HealthInsightsEngine
from healthlens.domains.health.tools.audit_tools import register_audit_tools
from healthlens.domains.health.tools.data_management_tools import register_data_management_tools
from healthlens.domains.health.tools.insights_tools import register_insights_tools
from healthlens.domains.health.tools.record_entry_tools import register_record_entry_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "HealthLens"
SERVER_VERSION = "0.1.0"


def _open_repository(settings: Settings) -> tuple[HealthRepository, HealthDatabase] | None:
    """Open the on-disk health data bank, or None when persistence is off."""
    if not settings.encryption_key:
        logger.info(
            "No ENCRYPTION_KEY configured; running without persistence. "
            "Set ENCRYPTION_KEY to enable the health data bank."
        )
        return None
    try:
        encryptor = FieldEncryptor(settings.encryption_key)
    except EncryptionError as exc:
        logger.error("Failed to initialize storage: %s", exc)
        logger.warning("Continuing without persistence; data will not be stored")
        return None

    health_db = HealthDatabase(settings.db_path)
    health_db.initialize()
    logger.info(
        "Health data bank initialized: %s (schema v%d)",
        settings.db_path,
        health_db.get_schema_version(),
    )
    return HealthRepository(health_db, encryptor), health_db


def create_app(
    *,
    settings_override: Settings | None = None,
    repository_override: HealthRepository | None = None,
    database_override: HealthDatabase | None = None,
    data_source_override: HealthDataSource | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastMCP:
    """Create and configure the HealthLens MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes the encrypted storage layer (health data bank)
    3. Builds the insights engine over the stored records
    4. Registers the record entry, data management, insights and audit tools

    Args:
        settings_override: Settings to use instead of the environment.
        repository_override: Pre-built repository (tests use in-memory SQLite).
        database_override: Database backing the audit trail when a repository
            override is given.
        data_source_override: Alternative data source for the engine.
        clock: Source of "now" shared by the engine and the data source.
    """
    settings = settings_override or get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Personal health insights server. Record vital signs and daily "
            "journal entries, then ask for a composite health score, ranked "
            "insights, trends and recommendations."
        ),
    )

    # --- Encrypted storage (health data bank) ---
    repository: HealthRepository | None = repository_override
    health_db: HealthDatabase | None = database_override
    if repository is None:
        opened = _open_repository(settings)
        if opened is not None:
            repository, health_db = opened

    audit_logger = AuditLogger(health_db) if health_db is not None else None

    # --- Insights engine ---
    engine: HealthInsightsEngine | None = None
    data_source = data_source_override
    if data_source is None and repository is not None:
        data_source = RepositoryDataSource(repository, clock=clock)
    if data_source is not None and repository is not None:
        engine = HealthInsightsEngine(
            data_source,
            SnapshotCache(repository, clock),
            settings,
            clock=clock,
            audit_logger=audit_logger,
        )

    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "storage_enabled": repository is not None,
            "insights_enabled": engine is not None,
        }
        if repository is not None:
            status["records_stored"] = repository.count_records()
        if engine is not None:
            status["cache"] = engine.get_cache_stats().to_dict()
        return status

    # --- Tools (require storage) ---
    if repository is not None:
        register_record_entry_tools(
            server, repository, default_user_id=settings.default_user_id, clock=clock,
        )
        logger.info("Record entry tools registered")
        register_data_management_tools(
            server,
            repository,
            default_user_id=settings.default_user_id,
            audit_logger=audit_logger,
            clock=clock,
        )
        logger.info("Data management tools registered")

    if engine is not None:
        register_insights_tools(
            server,
            engine,
            default_user_id=settings.default_user_id,
            audit_logger=audit_logger,
        )
        logger.info("Health insights tools registered")

    if audit_logger is not None:
        register_audit_tools(server, audit_logger)
        logger.info("Audit trail tools registered")

    return server


# Module-level instance for FastMCP discovery ("...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
