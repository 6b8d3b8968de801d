"""Structured logging configuration for Skriptor."""

import logging
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structured logging for the ingestion pipeline."""

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_audit_logger(component: str) -> structlog.BoundLogger:
    """Get a logger bound to a pipeline component."""
    # lazy proxy, bound on first use
    return structlog.get_logger(component, component=component)


def log_stage_failure(
    logger: structlog.BoundLogger,
    stage: str,
    error: BaseException,
    fatal: bool = False,
    **context,
) -> None:
    """Log a failed pipeline stage with enough context to diagnose it later."""
    log = logger.error if fatal else logger.warning
    log(
        "stage_failed",
        stage=stage,
        fatal=fatal,
        error=str(error),
        error_type=type(error).__name__,
        **context,
    )


def log_ingestion_event(
    logger: structlog.BoundLogger,
    document_id: str,
    title: str,
    pages: int,
    sections_created: int,
    images_stored: int,
    pages_with_images: List[int],
    structured_by: str,
    processing_time_ms: float,
    owner_id: Optional[str] = None,
) -> None:
    """Log document ingestion for the audit trail."""
    logger.info(
        "document_ingested",
        document_id=document_id,
        owner_id=owner_id,
        title=title,
        pages=pages,
        sections_created=sections_created,
        images_stored=images_stored,
        pages_with_images=pages_with_images,
        structured_by=structured_by,
        processing_time_ms=processing_time_ms,
        event_type="document_ingestion",
    )
