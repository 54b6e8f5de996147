"""ASGI entry point.

    uvicorn main:app --host 0.0.0.0 --port 8000

The watcher config file is taken from VDR_CONFIG_PATH (default ./config.yml).
"""
from __future__ import annotations

import logging
import os
import sys

from vdr.api import create_app
from vdr.config import load_config
from vdr.scheduler import Fleet, build_fleet
from vdr.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_config_arg: str | None = None


def _build_fleet() -> Fleet:
    return build_fleet(load_config(_config_arg, settings), settings)


app = create_app(_build_fleet, settings)


if __name__ == "__main__":
    import uvicorn

    if len(sys.argv) > 1:
        _config_arg = sys.argv[1]
    uvicorn.run(app, host=os.getenv("VDR_API_HOST", "127.0.0.1"), port=int(os.getenv("VDR_API_PORT", "8000")))
