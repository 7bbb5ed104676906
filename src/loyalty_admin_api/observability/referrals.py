from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class ReferralSnapshot:
    referrals: Dict[str, int]
    rules: Dict[str, int]
    conversions: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "referrals": dict(self.referrals),
            "rules": dict(self.rules),
            "conversions": dict(self.conversions),
        }


class ReferralObservabilityStore:
    """Collect referral and rule-configuration telemetry for dashboards."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._referrals: Dict[str, int] = defaultdict(int)
        self._rules: Dict[str, int] = defaultdict(int)
        self._conversions: Dict[str, int] = defaultdict(int)

    def record_referral_event(self, event: str, *, count: int = 1) -> None:
        with self._lock:
            self._referrals[event] += count

    def record_rule_change(self, rule_type: str, action: str) -> None:
        with self._lock:
            self._rules[f"{rule_type}:{action}"] += 1

    def record_conversion(self, outcome: str) -> None:
        with self._lock:
            self._conversions[outcome] += 1

    def snapshot(self) -> ReferralSnapshot:
        with self._lock:
            return ReferralSnapshot(
                referrals=dict(self._referrals),
                rules=dict(self._rules),
                conversions=dict(self._conversions),
            )

    def reset(self) -> None:
        with self._lock:
            self._referrals.clear()
            self._rules.clear()
            self._conversions.clear()


_STORE = ReferralObservabilityStore()


def get_referral_store() -> ReferralObservabilityStore:
    return _STORE


__all__ = ["get_referral_store", "ReferralObservabilityStore", "ReferralSnapshot"]
