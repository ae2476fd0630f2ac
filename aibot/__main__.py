"""
aibot/__main__.py
Console entry point: ``python -m aibot`` or ``aibot``.
"""

import asyncio
import sys

from pydantic import ValidationError

from .core.config import get_settings
from .core.exceptions import AcquisitionError
from .core.logging import get_logger, setup_logging
from .lifespan.manager import LifecycleDriver

EXIT_STARTUP_FAILED = 1
EXIT_INTERRUPTED = 130


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        sys.exit(f"invalid configuration:\n{e}")

    setup_logging(settings)
    logger = get_logger("main")

    driver = LifecycleDriver(settings)
    try:
        exit_code = asyncio.run(driver.run())
    except AcquisitionError as e:
        logger.error("service_failed_to_start", **e.to_dict())
        exit_code = EXIT_STARTUP_FAILED
    except KeyboardInterrupt:
        # SIGINT before the driver had its handlers installed; nothing acquired yet
        logger.warning("service_interrupted")
        exit_code = EXIT_INTERRUPTED

    logger.info("process_exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
