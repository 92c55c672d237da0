from __future__ import annotations

import argparse

import uvicorn

from taskflow.config import get_settings
from taskflow.observability.logging import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="TaskFlow backend API server (HOST/PORT come from the environment)")
    parser.add_argument("--reload", action="store_true", help="Restart the server when source files change")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    # The observability middleware already writes one line per request.
    uvicorn.run(
        "taskflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=bool(args.reload),
        access_log=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()
