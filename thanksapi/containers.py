from dependency_injector import containers, providers

from thanksapi.config import Settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.database.session import get_db
from thanksapi.providers.queue.sqs import SQSClient
from thanksapi.services.appreciation_service import AppreciationService
from thanksapi.services.conversion_service import ConversionService
from thanksapi.services.notification_service import build_dispatcher
from thanksapi.services.purchase_service import PurchaseService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)
    catalog = providers.Singleton(RateCatalog.from_settings, settings=config)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    sqs_client = providers.Singleton(SQSClient, settings=config.config)
    dispatcher = providers.Singleton(
        build_dispatcher, settings=config.config, sqs_client=sqs_client
    )

    appreciation_service = providers.Factory(
        AppreciationService,
        db=repositories.get_db,
        settings=config.config,
        catalog=config.catalog,
        dispatcher=dispatcher,
    )
    purchase_service = providers.Factory(
        PurchaseService,
        db=repositories.get_db,
        settings=config.config,
        catalog=config.catalog,
        dispatcher=dispatcher,
    )
    conversion_service = providers.Factory(
        ConversionService,
        db=repositories.get_db,
        settings=config.config,
        catalog=config.catalog,
        dispatcher=dispatcher,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "thanksapi.routers.appreciation_router",
            "thanksapi.routers.token_router",
            "thanksapi.routers.conversion_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
