"""Run the proxy with uvicorn: ``python -m mobileproxy``."""

import uvicorn

from mobileproxy.app.core.config import settings


def main() -> None:
    uvicorn.run(
        "mobileproxy.app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
