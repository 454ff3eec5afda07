"""
casesync main entry point
Serves the cached Advbox mirror and runs the scheduled cache refresh
"""

import uvicorn
from loguru import logger

from casesync.api.app import create_app
from casesync.settings import global_settings

app = create_app(start_scheduler=global_settings.cache_refresh_enabled)


def main() -> None:
    """Run the HTTP server"""
    logger.info(
        f"Starting casesync on {global_settings.host}:{global_settings.port}..."
    )
    uvicorn.run(
        "main:app",
        host=global_settings.host,
        port=global_settings.port,
        reload=global_settings.debug,
    )
    logger.info("casesync stopped")


if __name__ == "__main__":
    main()
