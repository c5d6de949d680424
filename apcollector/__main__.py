"""Run the API server: ``python -m apcollector``."""
import uvicorn

from apcollector.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "apcollector.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
