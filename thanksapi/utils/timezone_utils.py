"""
타임존 유틸리티

일일 제한(무료 감사, 포인트 전환)의 날짜 경계는 설정된 TIMEZONE 기준입니다.
"""

from datetime import date, datetime, timezone, tzinfo
from functools import lru_cache
from typing import Optional
import pytz


@lru_cache(maxsize=16)
def get_zone(name: str) -> tzinfo:
    """타임존 이름을 tzinfo로 변환 (UTC는 내장 객체 사용)"""
    if name.upper() == "UTC":
        return timezone.utc
    return pytz.timezone(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_date(tz_name: str, now: Optional[datetime] = None) -> date:
    """주어진 시각(기본: 현재)의 해당 타임존 달력 날짜"""
    moment = now or utc_now()
    if moment.tzinfo is None:
        # naive datetime은 UTC로 가정
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(get_zone(tz_name)).date()
