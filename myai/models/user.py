from dataclasses import dataclass, field, replace
from datetime import datetime

from utils import non_negative


@dataclass(frozen=True)
class AiUsage:
    total_tokens: int
    total_requests: int
    monthly_tokens: int
    monthly_requests: int
    last_reset_at: datetime

    def record(self, tokens: int, requests: int, now: datetime) -> "AiUsage":
        """Add usage, resetting the monthly counters first when the calendar month changed"""
        usage = self
        if (now.year, now.month) != (self.last_reset_at.year, self.last_reset_at.month):
            usage = replace(usage, monthly_tokens=0, monthly_requests=0, last_reset_at=now)

        tokens = non_negative(tokens)
        requests = non_negative(requests)
        return replace(
            usage,
            total_tokens=usage.total_tokens + tokens,
            total_requests=usage.total_requests + requests,
            monthly_tokens=usage.monthly_tokens + tokens,
            monthly_requests=usage.monthly_requests + requests,
        )


@dataclass
class User:
    id: str
    api_key: str
    usage: AiUsage
    created_at: datetime | None = field(default=None)
