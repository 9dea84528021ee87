"""
Run the API server: `python -m elabel` or the `elabel-api` script.

uvicorn owns signal handling: on SIGINT/SIGTERM it stops accepting
connections, waits up to SHUTDOWN_TIMEOUT seconds for in-flight requests,
then runs the lifespan shutdown.
"""

import uvicorn

from elabel.config import settings


def main() -> None:
    uvicorn.run(
        "elabel.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_timeout,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
