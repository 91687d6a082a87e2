from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from thanksapi.config import settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.database.session import get_db
from thanksapi.services.reconciliation_service import ReconciliationService


@lru_cache()
def get_catalog() -> RateCatalog:
    return RateCatalog.from_settings(settings)


def get_reconciliation_service(
    db: Session = Depends(get_db),
    catalog: RateCatalog = Depends(get_catalog),
) -> ReconciliationService:
    return ReconciliationService(db=db, settings=settings, catalog=catalog)
