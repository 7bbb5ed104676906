from fastapi import APIRouter

from .endpoints import (
    audit,
    coin_conversion,
    health,
    observability,
    referral_program,
    referral_program_rules,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(coin_conversion.router)
router.include_router(referral_program.router)
router.include_router(referral_program_rules.router)
router.include_router(audit.router)
router.include_router(observability.router)
