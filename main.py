"""
Run the quiz assessment engine API under uvicorn.

    python main.py                      # host/port from settings
    python main.py --port 9000 --reload
    uvicorn src.api.main:app --port 8100
"""
import sys
from pathlib import Path

import typer
import uvicorn

# Project root holds config.py and the src package
sys.path.insert(0, str(Path(__file__).parent))

from config import get_settings  # noqa: E402
from src.logging_setup import configure_logging  # noqa: E402


def serve(
    host: str = typer.Option(None, help="Bind address (default: API_HOST)"),
    port: int = typer.Option(None, help="Port (default: API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
) -> None:
    """Serve the quiz API."""
    settings = get_settings()
    configure_logging()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    typer.run(serve)
