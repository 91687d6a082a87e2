"""
로컬 개발용 샘플 계정 시드 스크립트
기술자, 고객, 관리자 계정과 고객 토큰 잔액을 생성
"""

import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session

from thanksapi.config import settings
from thanksapi.database.connection import SessionLocal
from thanksapi.logging_config import setup_logging
from thanksapi.models.balance import TokenBalance
from thanksapi.models.profile import Admin, Customer, Technician

logger = logging.getLogger("thanksapi.scripts.seed_data")

SAMPLE_TECHNICIANS = [
    # (id, auth_uid, name, business_name)
    ("tech-alex", "auth-tech-alex", "Alex Rivera", "Rivera HVAC"),
    ("tech-sam", "auth-tech-sam", "Sam Okafor", "Okafor Plumbing"),
    ("tech-jo", None, "Jo Park", "Park Electric"),
]

SAMPLE_CUSTOMERS = [
    # (id, auth_uid, name, starting tokens)
    ("cust-maria", "auth-cust-maria", "Maria Lopez", 100),
    ("cust-dev", "auth-cust-dev", "Dev Patel", 20),
]

SAMPLE_ADMINS = [
    ("admin-ops", "auth-admin-ops", "Ops Admin"),
]


def _seed_accounts(db: Session) -> int:
    created = 0
    for account_id, auth_uid, name, business_name in SAMPLE_TECHNICIANS:
        if db.get(Technician, account_id) is None:
            db.add(
                Technician(
                    id=account_id,
                    auth_uid=auth_uid,
                    name=name,
                    business_name=business_name,
                    email=f"{account_id}@example.com",
                )
            )
            created += 1

    for account_id, auth_uid, name, tokens in SAMPLE_CUSTOMERS:
        if db.get(Customer, account_id) is None:
            db.add(
                Customer(
                    id=account_id,
                    auth_uid=auth_uid,
                    name=name,
                    email=f"{account_id}@example.com",
                )
            )
            created += 1
        if db.get(TokenBalance, account_id) is None:
            db.add(
                TokenBalance(
                    user_id=account_id, tokens=tokens, total_purchased=tokens, total_spent=0
                )
            )

    for account_id, auth_uid, name in SAMPLE_ADMINS:
        if db.get(Admin, account_id) is None:
            db.add(Admin(id=account_id, auth_uid=auth_uid, name=name))
            created += 1
    return created


def seed_all():
    db = SessionLocal()
    try:
        created = _seed_accounts(db)
        db.commit()
        logger.info(f"Seeded {created} accounts")
    except Exception as e:
        db.rollback()
        logger.error(f"Seeding failed: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    seed_all()
