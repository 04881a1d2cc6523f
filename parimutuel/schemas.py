from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime, timezone
from typing import Dict, List, Optional, Literal


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    id: str
    name: str
    balance: int = Field(ge=0)


class Event(BaseModel):
    id: str
    name: str = Field(min_length=1)
    options: List[str]
    created_at: datetime = Field(default_factory=utcnow)
    ends_at: Optional[datetime] = None

    # Settlement
    resolved: bool = False
    result: Optional[str] = None

    @model_validator(mode="after")
    def _check_outcomes(self):
        if len(self.options) < 2:
            raise ValueError("an event needs at least 2 options")
        if len(set(self.options)) != len(self.options):
            raise ValueError("event options must be unique")
        if any(not o for o in self.options):
            raise ValueError("event options cannot be empty")
        # result is set if and only if the event is resolved
        if self.resolved != (self.result is not None):
            raise ValueError("result must be set exactly when the event is resolved")
        if self.result is not None and self.result not in self.options:
            raise ValueError(f"result {self.result!r} is not one of the event options")
        return self

    def with_result(self, choice: str) -> "Event":
        """Return the resolved copy of this event. Validated like any new event."""
        data = self.model_dump()
        data.update(resolved=True, result=choice)
        return Event(**data)

    def status(self, now: Optional[datetime] = None) -> Literal["open", "closed", "resolved"]:
        """
        'closed' only means the deadline has passed and a result is pending.
        It is informational: betting stays open until the event is resolved.
        """
        if self.resolved:
            return "resolved"
        if self.ends_at is not None:
            now = now or utcnow()
            ends_at = self.ends_at
            if ends_at.tzinfo is None:
                ends_at = ends_at.replace(tzinfo=timezone.utc)
            if now > ends_at:
                return "closed"
        return "open"


class Bet(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    choice: str
    amount: int = Field(gt=0)
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Payout(BaseModel):
    bet_id: str
    user_id: str
    stake: int
    credit: int


class PayoutSummary(BaseModel):
    event_id: str
    result: str
    odds: Dict[str, float]
    pool: int
    payouts: List[Payout] = []

    @property
    def total_paid(self) -> int:
        return sum(p.credit for p in self.payouts)
