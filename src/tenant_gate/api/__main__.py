"""
tenant_gate.api.__main__

Entrypoint for running the FastAPI application via `python -m tenant_gate.api`.

Responsibilities:
- Load settings.
- Create the app (fails fast on a weak master key or unsafe auth mode).
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from tenant_gate.api.app import create_app
from tenant_gate.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
