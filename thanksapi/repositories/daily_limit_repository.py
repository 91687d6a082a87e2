"""
무료 감사 일일 제한 리포지토리

(발신자, 날짜) 당 한 행에 그날 감사한 기술자 목록을 저장합니다.
확인과 기록은 호출한 서비스의 원자적 작업 단위 안에서 수행되며,
경합은 다음 두 가지로 감지됩니다.

- 첫 기록 생성 경합: (user_id, limit_date) 유니크 제약 위반
- 이후 갱신 경합: version 컬럼 불일치 (StaleDataError)

두 경우 모두 재시도에서 최신 행을 다시 읽고 "이미 감사함"으로 판정됩니다.
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from thanksapi.models.daily_limit import DailyThankLimit
from thanksapi.repositories.base import BaseRepository
from thanksapi.schemas.appreciation import RateLimitStatus


class DailyLimitRepository(BaseRepository[DailyThankLimit, RateLimitStatus]):
    def __init__(self, db: Session):
        super().__init__(DailyThankLimit, RateLimitStatus, db)

    def find(
        self, user_id: str, limit_date: date, lock: bool = False
    ) -> Optional[DailyThankLimit]:
        query = self.db.query(DailyThankLimit).filter(
            DailyThankLimit.user_id == user_id,
            DailyThankLimit.limit_date == limit_date,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def status(
        self,
        user_id: str,
        recipient_id: str,
        limit_date: date,
        max_daily_thanks: int,
        free_thank_yous_to_recipient: int = 0,
    ) -> RateLimitStatus:
        """현재 제한 상태 조회 (쓰기 없음)"""
        record = self.find(user_id, limit_date)
        thanked = list(record.thanked_technicians) if record else []
        cap = record.max_daily_thanks if record else max_daily_thanks
        already_thanked = recipient_id in thanked
        remaining = max(cap - len(thanked), 0)
        return RateLimitStatus(
            sender_id=user_id,
            recipient_id=recipient_id,
            limit_date=limit_date,
            can_send_free=not already_thanked and remaining > 0,
            already_thanked=already_thanked,
            thanked_today_count=len(thanked),
            remaining_today=remaining,
            free_thank_yous_to_recipient=free_thank_yous_to_recipient,
        )

    def record(
        self,
        record: Optional[DailyThankLimit],
        user_id: str,
        recipient_id: str,
        limit_date: date,
        max_daily_thanks: int,
    ) -> DailyThankLimit:
        """오늘 기록에 기술자를 추가 (없으면 생성, flush만 수행)"""
        if record is None:
            record = DailyThankLimit(
                user_id=user_id,
                limit_date=limit_date,
                thanked_technicians=[recipient_id],
                max_daily_thanks=max_daily_thanks,
            )
            return self.add(record)

        if recipient_id not in record.thanked_technicians:
            # JSON 컬럼은 제자리 변경이 추적되지 않으므로 새 리스트를 할당
            record.thanked_technicians = list(record.thanked_technicians) + [recipient_id]
            self.db.flush()
        return record
