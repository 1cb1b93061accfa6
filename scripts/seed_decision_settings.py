"""
Seed Decision Settings

Stores the default approval mode and auto-approval delay in admin_settings
so admins see explicit values from the first run. Existing values are left
alone.

Usage:
    python scripts/seed_decision_settings.py [REPORTING_DATE]

REPORTING_DATE is optional, in YYYY-MM-DD format.
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.config import settings
from app.core.database import async_session_maker, close_db
from app.modules.admissions import repository
from app.modules.admissions.models import SettingKey


async def seed_decision_settings(reporting_date: date | None) -> None:
    """Create the decision settings that don't exist yet."""

    defaults = {
        SettingKey.APPROVAL_MODE: (settings.default_approval_mode, "manual or automatic"),
        SettingKey.AUTO_APPROVAL_DELAY: (
            str(settings.default_auto_approval_delay_minutes),
            "Minutes before a pending applicant is accepted automatically",
        ),
    }
    if reporting_date is not None:
        defaults[SettingKey.REPORTING_DATE] = (
            reporting_date.isoformat(),
            "Reporting date printed on admission letters",
        )

    async with async_session_maker() as db:
        for key, (value, description) in defaults.items():
            existing = await repository.get_setting(db, key)
            if existing is not None:
                print(f"Setting already exists: {key.value} = {existing}")
                continue

            await repository.set_setting(db, key, value, description)
            print(f"Setting created: {key.value} = {value}")

    await close_db()


if __name__ == "__main__":
    reporting = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else None
    asyncio.run(seed_decision_settings(reporting))
