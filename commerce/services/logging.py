import json
import logging
from decimal import Decimal

from ..utils.clock import utcnow


logger = logging.getLogger("commerce.events")


def _default(value):
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def configure(level: str = "INFO") -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))


def log_event(level: str, event: str, **fields) -> None:
    payload = {
        "ts": utcnow().isoformat() + "Z",
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        json.dumps(payload, ensure_ascii=False, default=_default),
    )
