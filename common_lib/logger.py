import logging
import sys

from .config import get_settings

_logging_configured = False

_TEXT_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"


def setup_logging():
    global _logging_configured
    if _logging_configured:
        return

    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        # 순환 import 방지를 위해 지연 로드
        from .observability import CustomJsonFormatter

        handler.setFormatter(CustomJsonFormatter("%(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # 라이브러리 로그 레벨 조정
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str):
    """명명된 로거 가져오기(Get a named logger).

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    setup_logging()
    return logging.getLogger(name)
