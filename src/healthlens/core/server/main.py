"""HealthLens server entry point (``healthlens-server`` or ``python -m``)."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from healthlens.core.config.settings import Settings, get_settings
from healthlens.core.server.app import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_bind(settings: Settings) -> None:
    """The tools have no auth layer, so only loopback binds are allowed by default."""
    if settings.healthlens_allow_insecure_bind or _is_loopback_host(settings.healthlens_host):
        return
    raise RuntimeError(
        f"Refusing to serve health data on non-loopback host {settings.healthlens_host!r}. "
        "Set HEALTHLENS_ALLOW_INSECURE_BIND=true to override."
    )


def run() -> None:
    """Serve the HealthLens MCP server over Streamable HTTP."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.healthlens_log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    _check_bind(settings)

    logger.info(
        "Starting HealthLens on %s:%d (insights cache TTL %ds)",
        settings.healthlens_host,
        settings.healthlens_port,
        settings.cache_ttl_seconds,
    )
    create_app(settings_override=settings).run(
        transport="streamable-http",
        host=settings.healthlens_host,
        port=settings.healthlens_port,
    )


if __name__ == "__main__":
    run()
