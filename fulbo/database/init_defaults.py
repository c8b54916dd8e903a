#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate default settings.
"""

import asyncio
import logging
from fulbo.database import db
from fulbo.services import settings_service
from fulbo.utils.constants import SETTING_CURRENT_MONTH, SETTING_CURRENT_YEAR
from fulbo.utils.datetime_utils import get_next_available_month

logger = logging.getLogger(__name__)


async def init_defaults():
    """Initialize default database values."""
    logger.info("Initializing default database values...")

    async with db.AsyncSessionLocal() as session:
        current_month = await settings_service.get_setting(session, SETTING_CURRENT_MONTH)
        current_year = await settings_service.get_setting(session, SETTING_CURRENT_YEAR)

        if current_month is None or current_year is None:
            year, month = get_next_available_month()
            await settings_service.set_setting(session, SETTING_CURRENT_MONTH, str(month))
            await settings_service.set_setting(session, SETTING_CURRENT_YEAR, str(year))
            logger.info(f"Set default active month: {month}/{year}")
        else:
            logger.info(f"Active month already set: {current_month}/{current_year}")

        await session.commit()

    logger.info("Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
