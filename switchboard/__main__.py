"""Run the Switchboard server: ``python -m switchboard``."""

import uvicorn

from switchboard.api.app import create_app
from switchboard.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.observability.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
