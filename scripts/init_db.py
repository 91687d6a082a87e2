import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from thanksapi.config import settings
from thanksapi.database.connection import engine
from thanksapi.database.models import Base
from thanksapi.logging_config import setup_logging

logger = logging.getLogger("thanksapi.scripts.init_db")


def init_db():
    """데이터베이스 초기화"""
    try:
        # 스키마 생성 (PostgreSQL 전용)
        if engine.dialect.name == "postgresql" and settings.POSTGRES_SCHEMA:
            with engine.connect() as conn:
                conn.execute(
                    text(f"CREATE SCHEMA IF NOT EXISTS {settings.POSTGRES_SCHEMA}")
                )
                conn.commit()

        # 테이블 생성
        Base.metadata.create_all(bind=engine)
        logger.info(
            f"Database initialized: {len(Base.metadata.tables)} tables on {engine.dialect.name}"
        )

    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    init_db()
