import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

load_dotenv("thanksapi/.env")

from thanksapi import containers  # noqa: E402
from thanksapi.config import settings  # noqa: E402
from thanksapi.core.exception_handlers import register_exception_handlers  # noqa: E402
from thanksapi.core.logging_middleware import LoggingMiddleware  # noqa: E402
from thanksapi.logging_config import setup_logging  # noqa: E402
from thanksapi.routers import (  # noqa: E402
    admin_router,
    appreciation_router,
    conversion_router,
    health_router,
    token_router,
)

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger("thanksapi")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.PROJECT_NAME,
        debug=settings.DEBUG,
    )
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    @app.get("/")
    def root() -> dict:
        return {"message": f"{settings.APP_NAME} is running"}

    app.include_router(health_router.router)
    api_prefix = settings.API_V1_STR
    app.include_router(appreciation_router.router, prefix=api_prefix)
    app.include_router(token_router.router, prefix=api_prefix)
    app.include_router(conversion_router.router, prefix=api_prefix)
    app.include_router(admin_router.router, prefix=api_prefix)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()
handler = Mangum(app)
