"""Referral service exports."""

from .program_service import ReferralLink, ReferralProgramService  # noqa: F401
from .tracker import ReferralEntryTracker  # noqa: F401
