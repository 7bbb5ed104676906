"""Seed development roles and admin accounts into the API database."""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from loyalty_admin_api.api.dependencies.security import (
    VIEW_AUDIT_LOGS,
    VIEW_COIN_MANAGEMENT,
    VIEW_REFERRAL_PROGRAM,
)
from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.models import WILDCARD_PERMISSION, Admin, Role


class SeedRole(TypedDict):
    name: str
    description: str
    permissions: list[str]


class SeedAdmin(TypedDict):
    email: str
    name: str
    role: str


DEV_ROLES: list[SeedRole] = [
    {"name": "super_admin", "description": "Full access", "permissions": [WILDCARD_PERMISSION]},
    {
        "name": "loyalty_manager",
        "description": "Coin conversion and referral program management",
        "permissions": [VIEW_COIN_MANAGEMENT, VIEW_REFERRAL_PROGRAM],
    },
    {"name": "auditor", "description": "Read-only audit trail access", "permissions": [VIEW_AUDIT_LOGS]},
]

DEV_ADMINS: list[SeedAdmin] = [
    {
        "email": os.getenv("DEV_SUPER_ADMIN_EMAIL", "admin@loyalty.dev").lower(),
        "name": "Super Admin",
        "role": "super_admin",
    },
    {
        "email": os.getenv("DEV_LOYALTY_MANAGER_EMAIL", "manager@loyalty.dev").lower(),
        "name": "Loyalty Manager",
        "role": "loyalty_manager",
    },
    {
        "email": os.getenv("DEV_AUDITOR_EMAIL", "auditor@loyalty.dev").lower(),
        "name": "Auditor",
        "role": "auditor",
    },
]


async def seed_roles(session: AsyncSession) -> dict[str, Role]:
    roles: dict[str, Role] = {}
    for seed in DEV_ROLES:
        with session.no_autoflush:
            existing = await session.execute(select(Role).where(Role.name == seed["name"]))
        role = existing.scalar_one_or_none()
        if role:
            role.description = seed["description"]
            role.permissions = list(seed["permissions"])
            role.is_active = True
        else:
            role = Role(name=seed["name"], description=seed["description"], permissions=list(seed["permissions"]))
            session.add(role)
        roles[seed["name"]] = role
    await session.flush()
    return roles


async def seed_admins(session: AsyncSession) -> list[Admin]:
    roles = await seed_roles(session)
    admins: list[Admin] = []
    for seed in DEV_ADMINS:
        with session.no_autoflush:
            existing = await session.execute(select(Admin).where(Admin.email == seed["email"]))
        admin = existing.scalar_one_or_none()
        if admin:
            admin.name = seed["name"]
            admin.role_id = roles[seed["role"]].id
            admin.is_active = True
        else:
            admin = Admin(email=seed["email"], name=seed["name"], role_id=roles[seed["role"]].id)
            session.add(admin)
        admins.append(admin)
    await session.commit()
    return admins


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_factory() as session:
            admins = await seed_admins(session)
        for admin in admins:
            print(f"{admin.email}: X-Admin-Id {admin.id}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
