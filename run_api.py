#!/usr/bin/env python3
"""
Serve the widget API with uvicorn.

Usage: python run_api.py [--no-reload]
HOST / PORT / API_RELOAD come from the environment (.env). Set HOST=0.0.0.0 to allow network access.
"""
import sys
from pathlib import Path

# .env must be loaded before uvicorn starts: the reload worker re-imports robochat.main
_ROOT = Path(__file__).resolve().parent
from dotenv import load_dotenv
load_dotenv(_ROOT / ".env", override=True)

import uvicorn

from robochat.core.config import get_settings

APP = "robochat.main:app"


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    settings = get_settings()
    reload = settings.api_reload and "--no-reload" not in args
    print(f"Serving {APP} on http://{settings.host}:{settings.port} (reload={'on' if reload else 'off'})")
    uvicorn.run(APP, host=settings.host, port=settings.port, reload=reload)


if __name__ == "__main__":
    main()
