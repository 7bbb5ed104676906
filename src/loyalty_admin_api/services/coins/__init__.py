"""Coin conversion service exports."""

from .conversion_service import (  # noqa: F401
    CoinConversionQuote,
    CoinConversionResult,
    CoinConversionService,
    calculate_coins,
)
