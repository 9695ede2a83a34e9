import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from chat_intake.config.settings import settings

IDENTITY_PREFIX_LEN = 8


def redact_identity(identity: Optional[str]) -> str:
    """只保留身份标识的前 8 个字符。"""
    if not identity:
        return ""
    if len(identity) <= IDENTITY_PREFIX_LEN:
        return identity[:IDENTITY_PREFIX_LEN]
    return identity[:IDENTITY_PREFIX_LEN] + "…"


def preview(text: Optional[str], limit: int = 100) -> str:
    return (text or "")[:limit]


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("chat_intake")
    logger.setLevel(logging.INFO)
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "chat_intake.log", encoding="utf-8")
    fh.setLevel(logging.INFO)

    class JsonFormatter(logging.Formatter):
        def format(self, record: logging.LogRecord) -> str:
            msg = record.getMessage()
            if settings.log_redact_content:
                msg = (msg or "")[:64]
            payload = {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
                "level": record.levelname,
                "name": record.name,
                "msg": msg,
            }
            extra = getattr(record, "extra", None)
            if isinstance(extra, dict):
                payload.update(extra)
            return json.dumps(payload, ensure_ascii=False, default=str)

    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
