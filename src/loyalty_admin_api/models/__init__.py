"""SQLAlchemy models package."""

from .admin import Admin, Role, WILDCARD_PERMISSION  # noqa: F401
from .audit import AuditCategory, AuditLog, AuditStatus  # noqa: F401
from .conversion import CoinConversion, CoinConversionStatus  # noqa: F401
from .customer import Customer  # noqa: F401
from .referral import ReferralEntry, ReferralEntryStatus  # noqa: F401
from .rules import TIER_NAMES, CoinConversionRule, ReferralProgramRule  # noqa: F401
