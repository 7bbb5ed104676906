"""Rule configuration store exports."""

from .store import RuleConfigurationStore  # noqa: F401
