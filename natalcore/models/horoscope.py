"""
Pydantic models for horoscope results and the caller's style context.
"""
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from natalcore.models.chart import Body


class HoroscopeCategory(str, Enum):
    DAILY = "daily"
    LOVE = "love"
    CAREER = "career"
    HEALTH = "health"


CATEGORY_ORDER = list(HoroscopeCategory)


class ValidityPolicy(BaseModel):
    """
    How long a composed horoscope stays valid.
    Supplied by the caller (subscription layer), not decided by the composer.
    """
    daily_days: int = 1
    default_days: int = 7
    extended_days: int = 730
    extended_tier: int = 3

    def window(self, category: HoroscopeCategory, tier: int = 0) -> timedelta:
        if category == HoroscopeCategory.DAILY:
            return timedelta(days=self.daily_days)
        if tier >= self.extended_tier:
            return timedelta(days=self.extended_days)
        return timedelta(days=self.default_days)


class StyleContext(BaseModel):
    locale: str = "en"
    display_name: str = ""
    tier: int = 0
    validity: ValidityPolicy = Field(default_factory=ValidityPolicy)


class HoroscopeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    category: HoroscopeCategory
    title: str
    content: str

    lucky_number: int = Field(ge=1, le=40)
    lucky_body: Body
    lucky_color: str

    valid_from: datetime
    valid_until: datetime
    degraded_chart: bool = False

    def is_valid_at(self, moment: datetime) -> bool:
        return moment < self.valid_until
