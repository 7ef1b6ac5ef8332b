"""Logging setup for dealdesk.

Two log streams are written under ``$DEALDESK_DATA_DIR/logs`` (default
``~/.dealdesk/logs``):

- ``local-YYYY-MM-DD.log``: regular application log for the ``dealdesk``
  logger hierarchy.
- ``commerce-events-YYYY-MM-DD.log``: one line per business event
  (offer transitions, escrow releases, sweep results). Easy to grep when
  reconstructing what happened to a negotiation.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def get_log_dir() -> Path:
    """Resolve the log directory, creating it if needed."""
    base = os.environ.get("DEALDESK_DATA_DIR")
    root = Path(base) if base else Path.home() / ".dealdesk"
    log_dir = root / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_dealdesk_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``dealdesk`` logger with a daily file handler.

    Safe to call more than once: handlers are only attached the first time.
    A console handler is added only at DEBUG level.
    """
    level_name = level.upper() if isinstance(level, str) else "INFO"
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"

    logger = logging.getLogger("dealdesk")
    logger.setLevel(getattr(logging, level_name))

    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return logger

    log_file = get_log_dir() / f"local-{_today()}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if level_name == "DEBUG":
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)

    return logger


def log_commerce_event(event_type: str, details: str, actor_id: str = "system") -> None:
    """Append a single business event line to today's event log."""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    line = f"{timestamp} | {event_type} | actor={actor_id} | {details}\n"
    try:
        event_file = get_log_dir() / f"commerce-events-{_today()}.log"
        with open(event_file, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        logging.getLogger("dealdesk").warning("Could not write commerce event: %s", e)


def log_offer_transition(
    actor_id: str,
    offer_id: str,
    from_status: Optional[str],
    to_status: str,
) -> None:
    """Record an offer status change."""
    log_commerce_event(
        "offer",
        f"id={offer_id} | {from_status or 'new'} -> {to_status}",
        actor_id=actor_id,
    )


def log_escrow_event(actor_id: str, transaction_id: str, action: str, amount_cents: int) -> None:
    """Record an escrow movement (hold, release, refund)."""
    log_commerce_event(
        "escrow",
        f"id={transaction_id} | action={action} | amount_cents={amount_cents}",
        actor_id=actor_id,
    )


def log_sweep(sweep: str, processed: int, errors: int = 0) -> None:
    """Record the outcome of a periodic sweep."""
    log_commerce_event("sweep", f"name={sweep} | processed={processed} | errors={errors}")
