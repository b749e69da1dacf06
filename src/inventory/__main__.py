"""
Module entrypoint to run the inventory API server directly using:
    python -m src.inventory

Respects the following environment variables:
- PORT: Port to bind (default 3001)
- HOST: Host interface to bind (default 0.0.0.0)
- RELOAD: "1" to enable auto-reload (dev only)
- LOG_LEVEL: Log level for uvicorn and the inventory.* loggers (default "info")
"""
import logging
import os

import uvicorn


# PUBLIC_INTERFACE
def main():
    """Start the FastAPI application using uvicorn with sane defaults for container environments."""
    host = os.getenv("HOST", "0.0.0.0")
    try:
        port = int(os.getenv("PORT") or "3001")
    except ValueError:
        port = 3001
    reload_flag = os.getenv("RELOAD", "0") == "1"
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Use module path to ensure proper import resolution
    uvicorn.run("src.inventory.main:app", host=host, port=port, reload=reload_flag, log_level=log_level)


if __name__ == "__main__":
    main()
