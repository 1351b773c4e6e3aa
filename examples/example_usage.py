"""Example: drive the service layer directly (no Flask).

Controllers are a thin layer; the registration rules live in the services.
"""

import importlib

from dotenv import load_dotenv

from config import get_settings_module

from src.event_system.event_system.container import build_container
from src.event_system.event_system.core.logging import setup_logging


def main():
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logger = setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(db_config=settings.DB_CONFIG, logger=logger)

    result = container.registration_service.register_for_event(1, "alice@student.local", "{}")
    logger.info("register: ok=%s error=%s message=%s", result.ok, result.error, result.message)

    stats = container.statistics_service.get_attendance_stats(1)
    if stats.ok:
        logger.info("stats: %s", stats.value)


if __name__ == "__main__":
    main()
