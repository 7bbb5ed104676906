from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from loyalty_admin_api.models.referral import ReferralEntry, ReferralEntryStatus
from loyalty_admin_api.schemas.common import CamelModel


class ReferralLinkRequest(CamelModel):
    user_id: UUID = Field(..., description="Customer issuing the referral link")


class ReferralLinkResponse(CamelModel):
    referral_link: str
    referrer_id: UUID
    referrals_used: int
    referrals_remaining: int


class ReferralEntryCreate(CamelModel):
    referrer_id: UUID
    referee_id: UUID


class ReferralCompleteRequest(CamelModel):
    referral_id: UUID
    purchase_amount: Decimal = Field(..., ge=0, description="Value of the referee's qualifying purchase")


class ReferralPoints(CamelModel):
    referrer_points: float = 0
    referee_points: float = 0


class ReferralEntryResponse(CamelModel):
    id: UUID
    referrer_id: UUID
    referee_id: UUID
    status: ReferralEntryStatus
    referral_points: ReferralPoints
    first_login_date: Optional[datetime] = None
    first_purchase_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: ReferralEntry) -> "ReferralEntryResponse":
        return cls(
            id=entry.id,
            referrer_id=entry.referrer_id,
            referee_id=entry.referee_id,
            status=entry.status,
            referral_points=ReferralPoints(
                referrer_points=float(entry.referrer_points or 0),
                referee_points=float(entry.referee_points or 0),
            ),
            first_login_date=entry.first_login_date,
            first_purchase_date=entry.first_purchase_date,
            completed_at=entry.completed_at,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )
