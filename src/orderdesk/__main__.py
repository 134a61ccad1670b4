"""Run the API server with ``python -m orderdesk``."""

import uvicorn

from .config import settings
from .logging_config import configure_logging


def main() -> None:
    configure_logging(settings.log_level)
    # log_config=None keeps the redacting handler installed above
    uvicorn.run(
        "orderdesk.api:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
