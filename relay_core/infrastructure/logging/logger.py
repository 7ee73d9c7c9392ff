import json
import logging
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "relay_core"


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
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
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(log_dir: str | Path, redact_content: bool = False) -> logging.Logger:
    """创建写入 <log_dir>/bot.log 的 JSON 行日志记录器，在进程入口调用一次。"""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "bot.log", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact_content))
    logger.addHandler(fh)
    return logger


def teardown_logger(logger: logging.Logger) -> None:
    """关闭并移除 setup_logger 挂上的所有处理器。"""

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
