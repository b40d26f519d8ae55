"""
Structured logging, correlation IDs, and optional Sentry initialization.

- structlog configuration with JSON/console rendering
- request_id binding via contextvars
- sensitive data redaction (backup passwords never reach the logs)
- Sentry init (if SENTRY_DSN provided)
"""
from __future__ import annotations

import logging
import os
import sys
import uuid
from typing import Any, Dict

import structlog

SCHEMA_VERSION = "1.0"

LOGGER = logging.getLogger(__name__)

_SENSITIVE_KEYS = ("token", "password", "secret", "authorization", "cookie", "access_key")

# Guard to avoid double Sentry initialization in multi-import scenarios
_SENTRY_INIT_DONE = False
# Track the DSN used for initialization to allow re-init if DSN changes during tests/runtime
_SENTRY_DSN_USED: str | None = None


def _redact_sensitive(logger, method, event_dict: Dict[str, Any]):
    try:
        for key in list(event_dict.keys()):
            try:
                if any(s in key.lower() for s in _SENSITIVE_KEYS):
                    event_dict[key] = "[REDACTED]"
            except Exception:
                continue
    except Exception:
        return event_dict
    return event_dict


def _add_schema_version(logger, method, event_dict: Dict[str, Any]):
    event_dict.setdefault("schema_version", SCHEMA_VERSION)
    return event_dict


def _choose_renderer(fmt: str | None = None):
    debug = str(os.getenv("DEBUG", "")).lower() in {"1", "true", "yes"}
    fmt = (fmt or os.getenv("SNIPO_LOG_FORMAT") or "").lower().strip()
    if debug or fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_structlog_logging(min_level: str | int = "INFO", fmt: str | None = None) -> None:
    level = logging.getLevelName(min_level.upper()) if isinstance(min_level, str) else int(min_level)
    if not isinstance(level, int):
        level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, handlers=[logging.StreamHandler()])
    else:
        logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _redact_sensitive,
            _add_schema_version,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _choose_renderer(fmt),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        # stdout שמור לפלט ה-CLI (JSON / גיבוי בינארי)
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


def bind_request_id(request_id: str) -> None:
    try:
        structlog.contextvars.bind_contextvars(request_id=request_id)
    except Exception:
        pass
    _set_sentry_tag("request_id", request_id)


def get_request_id(default: str = "") -> str:
    try:
        ctx = structlog.contextvars.get_contextvars()
    except Exception:
        return default
    value = ctx.get("request_id") if isinstance(ctx, dict) else None
    return str(value) if value else default


def _set_sentry_tag(name: str, value: str) -> None:
    if not value:
        return
    try:
        import sentry_sdk

        sentry_sdk.set_tag(str(name), str(value))
    except Exception:
        return


def emit_event(event: str, severity: str = "info", **fields: Any) -> None:
    logger = structlog.get_logger()
    fields.setdefault("event", event)

    if severity in {"error", "critical"}:
        request_id = str(fields.get("request_id") or get_request_id()).strip()
        if request_id and "request_id" not in fields:
            fields["request_id"] = request_id
        # גשר ישיר ל-Sentry כאשר ה-LoggingIntegration לא קולט structlog
        try:
            import sentry_sdk

            if _SENTRY_INIT_DONE:
                with sentry_sdk.push_scope() as scope:
                    if request_id:
                        scope.set_tag("request_id", request_id)
                    sentry_sdk.capture_message(
                        str(fields.get("error") or event), level="error"
                    )
        except Exception:
            # Fail-open אם sentry לא זמין
            pass
        logger.error(**fields)
    elif severity in {"warn", "warning"}:
        logger.warning(**fields)
    else:
        logger.info(**fields)


def init_sentry(dsn: str | None = None, environment: str | None = None) -> None:
    global _SENTRY_INIT_DONE, _SENTRY_DSN_USED
    dsn = dsn or os.getenv("SNIPO_SENTRY_DSN") or None
    if not dsn:
        LOGGER.info("sentry init skipped: missing DSN")
        return
    # If already initialized with the same DSN, skip. If DSN differs (e.g., in tests), allow re-init.
    if _SENTRY_INIT_DONE and (_SENTRY_DSN_USED == dsn):
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        def _before_send(event, hint):
            try:
                extra = event.get("extra", {})
                for k in list(extra.keys()):
                    if any(s in k.lower() for s in _SENSITIVE_KEYS):
                        extra[k] = "[REDACTED]"
                event["extra"] = extra
            except Exception:
                pass
            return event

        sentry_sdk.init(
            dsn=dsn,
            environment=str(environment or os.getenv("SNIPO_ENVIRONMENT") or "production"),
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
            integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
            before_send=_before_send,
        )
        _SENTRY_INIT_DONE = True
        _SENTRY_DSN_USED = dsn
    except Exception as exc:
        LOGGER.exception("sentry init failed: %s", exc)
        return
