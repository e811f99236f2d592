"""
Admin User Update Payload
Partial update for PATCH /api/admin/users/{id}; every block is optional,
unknown keys are rejected at every level
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from config.entries_config import AUSTRALIAN_STATES, MOBILE_PATTERN


def _check_object_id(value: str) -> str:
    if len(value) != 24 or not ObjectId.is_valid(value):
        raise ValueError("Invalid id format")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class StrictPayload(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"


class BasicInfoUpdate(StrictPayload):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    mobile: Optional[str] = Field(default=None, min_length=8, max_length=15, pattern=MOBILE_PATTERN)
    state: Optional[str] = Field(default=None, description="Australian state or territory code")
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None
    is_email_verified: Optional[bool] = None
    is_mobile_verified: Optional[bool] = None
    profile_setup_completed: Optional[bool] = None

    @field_validator("state")
    @classmethod
    def state_must_be_australian(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.strip().upper() not in AUSTRALIAN_STATES:
            raise ValueError(f"State must be one of {', '.join(AUSTRALIAN_STATES)}")
        return value


class SubscriptionUpdate(StrictPayload):
    package_id: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    auto_renew: Optional[bool] = None
    last_downgrade_date: Optional[datetime] = None
    last_upgrade_date: Optional[datetime] = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("Subscription update must include at least one field")
        return self


class RewardsUpdate(StrictPayload):
    rewards_points: Optional[float] = Field(default=None, ge=0)
    accumulated_entries: Optional[NonNegativeInt] = None
    entry_wallet: Optional[NonNegativeInt] = None


class OneTimePackageItem(StrictPayload):
    package_id: str = Field(..., min_length=1)
    purchase_date: Optional[datetime] = None
    start_date: datetime
    end_date: datetime
    is_active: bool
    entries_granted: NonNegativeInt


class MiniDrawPackageItem(StrictPayload):
    package_id: str = Field(..., min_length=1)
    package_name: str = Field(..., min_length=1)
    mini_draw_id: Optional[ObjectIdStr] = None
    purchase_date: datetime
    start_date: datetime
    end_date: datetime
    is_active: bool
    entries_granted: NonNegativeInt
    price: float = Field(..., ge=0)
    partner_discount_hours: Optional[float] = Field(default=None, ge=0)
    partner_discount_days: Optional[float] = Field(default=None, ge=0)
    stripe_payment_intent_id: Optional[str] = None


class PartnerDiscountQueueItem(StrictPayload):
    queue_id: ObjectIdStr
    status: Literal["active", "queued", "expired", "cancelled"]


class MajorDrawParticipationItem(StrictPayload):
    draw_id: ObjectIdStr
    total_entries: NonNegativeInt


class MiniDrawParticipationItem(StrictPayload):
    mini_draw_id: ObjectIdStr
    total_entries: NonNegativeInt
    is_active: Optional[bool] = None


class AdminUserUpdate(StrictPayload):
    """
    Top-level PATCH body.
    List blocks are complete replacements: send the full desired list.
    subscription: null clears the user's subscription.
    """
    basic_info: Optional[BasicInfoUpdate] = None
    subscription: Optional[SubscriptionUpdate] = None
    rewards: Optional[RewardsUpdate] = None
    one_time_packages: Optional[List[OneTimePackageItem]] = None
    mini_draw_packages: Optional[List[MiniDrawPackageItem]] = None
    partner_discount_queue: Optional[List[PartnerDiscountQueueItem]] = None
    major_draw_participation: Optional[List[MajorDrawParticipationItem]] = None
    mini_draw_participation: Optional[List[MiniDrawParticipationItem]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "basicInfo": {"firstName": "Sam", "state": "NSW"},
                "rewards": {"rewardsPoints": 120},
                "majorDrawParticipation": [
                    {"drawId": "66f1c0ffee0ddba11ca7f00d", "totalEntries": 15}
                ],
            }
        }

    @field_validator("major_draw_participation", "mini_draw_participation")
    @classmethod
    def draw_ids_unique(cls, items, info):
        if not items:
            return items
        key = "draw_id" if info.field_name == "major_draw_participation" else "mini_draw_id"
        seen = set()
        for item in items:
            draw_id = getattr(item, key).lower()
            if draw_id in seen:
                raise ValueError(f"Duplicate draw id {draw_id}; send one total per draw")
            seen.add(draw_id)
        return items

    def touches_reward_balances(self) -> bool:
        """True when any of rewardsPoints / accumulatedEntries / entryWallet is being set."""
        if self.rewards is None:
            return False
        return bool(self.rewards.model_fields_set & {"rewards_points", "accumulated_entries", "entry_wallet"})
