"""Structured logging helpers (PHI-safe).

Only identifiers go into log context: never provider names, identity
numbers or document contents.
"""

import logging
from typing import Any


def build_log_context(
    *,
    provider_id: str | None = None,
    record_id: str | None = None,
    actor_id: str | None = None,
    document_id: str | None = None,
    verification_type: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict."""
    context: dict[str, Any] = {}
    if provider_id:
        context["provider_id"] = str(provider_id)
    if record_id:
        context["record_id"] = str(record_id)
    if actor_id:
        context["actor_id"] = str(actor_id)
    if document_id:
        context["document_id"] = str(document_id)
    if verification_type:
        context["verification_type"] = verification_type
    if request_id:
        context["request_id"] = request_id
    return context


def configure_logging(level: int = logging.INFO) -> None:
    """Fallback console logging for the API, worker and CLI entry points."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
