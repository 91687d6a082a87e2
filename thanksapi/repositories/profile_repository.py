"""
계정 프로필 리포지토리 - 식별자 해석

한 사람이 역할별로 여러 테이블에 존재할 수 있으므로, 호출자는 테이블을
직접 고르지 않고 resolve()를 통해 (종류, 프로필) 쌍을 받습니다.
조회 순서는 technician -> customer -> admin 이며, 기본 ID와
외부 인증 ID(auth_uid) 모두로 찾습니다.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Union

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from thanksapi.models.profile import (
    ACCOUNT_MODELS,
    AccountKind,
    Admin,
    Customer,
    Technician,
)

Account = Union[Technician, Customer, Admin]

RESOLUTION_ORDER = (AccountKind.TECHNICIAN, AccountKind.CUSTOMER, AccountKind.ADMIN)


@dataclass(frozen=True)
class ResolvedAccount:
    """식별자 해석 결과 (종류 + 프로필 행)"""

    kind: AccountKind
    profile: Account

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def identities(self) -> List[str]:
        """이 계정을 가리키는 모든 ID (기본 ID, 인증 ID)"""
        ids = [self.profile.id]
        if self.profile.auth_uid and self.profile.auth_uid not in ids:
            ids.append(self.profile.auth_uid)
        return ids

    @property
    def display_name(self) -> str:
        if self.profile.name:
            return self.profile.name
        return "Technician" if self.kind == AccountKind.TECHNICIAN else "Customer"


class ProfileRepository:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, kind: AccountKind, identity: str, lock: bool) -> Optional[Account]:
        model = ACCOUNT_MODELS[kind]
        query = self.db.query(model).filter(
            or_(model.id == identity, model.auth_uid == identity)
        )
        if lock:
            query = query.with_for_update()
        # 기본 ID 일치를 인증 ID 일치보다 우선
        rows = query.limit(2).all()
        for row in rows:
            if row.id == identity:
                return row
        return rows[0] if rows else None

    def resolve(self, identity: str, lock: bool = False) -> Optional[ResolvedAccount]:
        """식별자로 계정을 찾음 (technician -> customer -> admin)

        Args:
            identity: 기본 ID 또는 외부 인증 ID
            lock: 원자적 작업 단위 안에서 행 잠금 여부

        Returns:
            ResolvedAccount 또는 None
        """
        for kind in RESOLUTION_ORDER:
            profile = self._find(kind, identity, lock)
            if profile is not None:
                return ResolvedAccount(kind=kind, profile=profile)
        return None

    def get_technician(self, identity: str, lock: bool = False) -> Optional[Technician]:
        return self._find(AccountKind.TECHNICIAN, identity, lock)  # type: ignore[return-value]

    def is_admin(self, identity: str) -> bool:
        return self._find(AccountKind.ADMIN, identity, lock=False) is not None

    def list_accounts(self, kind: AccountKind) -> List[Account]:
        model = ACCOUNT_MODELS[kind]
        return self.db.query(model).order_by(model.id).all()

    def patch_field(
        self,
        kind: AccountKind,
        account_id: str,
        field: str,
        observed: Any,
        new_value: Any,
    ) -> bool:
        """관찰한 값이 그대로일 때만 프로필 필드를 수정 (정합성 배치 전용)

        Returns:
            bool: 실제로 한 행이 수정되었는지
        """
        model = ACCOUNT_MODELS[kind]
        column = getattr(model, field)
        condition = column.is_(None) if observed is None else column == observed
        result = self.db.execute(
            update(model)
            .where(model.id == account_id, condition)
            .values({field: new_value, "version": model.version + 1})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
