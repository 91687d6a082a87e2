from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from thanksapi.config import Settings, settings


def build_engine(app_settings: Settings) -> Engine:
    url = app_settings.database_url
    if url.startswith("sqlite"):
        # 로컬/테스트용. 쓰기 잠금 대기 시간을 넉넉히 준다
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=app_settings.DEBUG,
        )

    connect_args: Dict[str, Any] = {}
    if app_settings.POSTGRES_SCHEMA:
        connect_args["options"] = f"-csearch_path={app_settings.POSTGRES_SCHEMA}"
    return create_engine(
        url,
        pool_size=app_settings.DB_POOL_SIZE,
        max_overflow=app_settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=app_settings.DEBUG,  # 디버그 모드에서 SQL 로깅
        connect_args=connect_args,
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    # expire_on_commit=False: 커밋 후에도 응답 생성 시 속성 접근 가능
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,
    )


engine = build_engine(settings)
SessionLocal = build_session_factory(engine)
