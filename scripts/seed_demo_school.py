"""Seed a demo school.

Creates the four roles (if missing), one school, and one account per role so
every dashboard can be exercised locally. Accounts go through the same
provision_account activity the admin screens use.

Prerequisites:
  - SUPABASE_DB_URL (session pooler)
  - SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY

Usage:
  python scripts/seed_demo_school.py --school "Springfield High" --domain springfield.edu
"""

import argparse
import asyncio
import logging

from schoolhub_auth.activities import provision_account
from schoolhub_data_access.client import get_engine
from schoolhub_data_access.tables import roles, schools
from schoolhub_shared.auth_models import Role
from schoolhub_shared.directory_models import ProvisionAccountRequest
from sqlalchemy import insert, select

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def ensure_roles() -> None:
    async with get_engine().begin() as conn:
        existing = set((await conn.execute(select(roles.c.role_name))).scalars().all())
        missing = [role.value for role in Role if role.value not in existing]
        if missing:
            await conn.execute(insert(roles), [{"role_name": name} for name in missing])
    logger.info(f"Roles ready (added: {', '.join(missing) or 'none'})")


async def ensure_school(name: str, domain: str) -> str:
    async with get_engine().begin() as conn:
        school_id = (
            await conn.execute(select(schools.c.id).where(schools.c.school_name == name))
        ).scalar()
        if school_id is None:
            school_id = (
                await conn.execute(
                    insert(schools)
                    .values(school_name=name, email=f"info@{domain}")
                    .returning(schools.c.id)
                )
            ).scalar()
            logger.info(f"Created school '{name}'")
    return str(school_id)


async def main(school: str, domain: str, password: str) -> None:
    await ensure_roles()
    school_id = await ensure_school(school, domain)

    for role in Role:
        email = f"{role.value.lower()}@{domain}"
        result = await provision_account(
            ProvisionAccountRequest(
                email=email,
                full_name=f"Demo {role.value}",
                role=role,
                password=password,
                school_id=None if role is Role.SUPERADMIN else school_id,
            )
        )
        level = logging.INFO if result.success else logging.WARNING
        logger.log(level, f"{email}: {result.message}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo school with one account per role")
    parser.add_argument("--school", default="Springfield High")
    parser.add_argument("--domain", default="springfield.edu")
    parser.add_argument("--password", default="change-me-please")
    args = parser.parse_args()
    asyncio.run(main(args.school, args.domain, args.password))
