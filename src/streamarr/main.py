import asyncio
import logging
import uvicorn
from streamarr.app import create_app
from streamarr.config import load_settings
from streamarr.logger import setup_logging


async def run():
    settings = load_settings()
    setup_logging(settings.log_level)
    logging.getLogger(__name__).info("Starting streamarr on port %s", settings.port)

    app = create_app(settings)
    config = uvicorn.Config(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
    server = uvicorn.Server(config)
    await server.serve()


def cli():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
