import logging.config
import sys


def setup_logging(log_level: str = "INFO", log_format: str = "text"):
    """
    dictConfig 기반 로깅 설정

    Args:
        log_level: 루트/애플리케이션 로그 레벨
        log_format: "simple" (로컬 개발) 또는 "json" (Lambda / CloudWatch)
    """
    log_level = log_level.upper()
    console_formatter = "json" if log_format.lower() == "json" else "simple"

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
            },
            "json": {
                "()": "thanksapi.utils.json_logging.JsonFormatter",
            },
        },
        "handlers": {
            "console": {
                "formatter": console_formatter,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "": {  # root logger
                "handlers": ["console"],
                "level": log_level,
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            "thanksapi": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            # SQL 로그는 필요할 때만 LOG_LEVEL과 별개로 올림
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        },
    }
    logging.config.dictConfig(LOGGING_CONFIG)
