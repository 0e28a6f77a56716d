"""ASGI entry point: `uvicorn approvalhub.main:app`."""

import uvicorn

from approvalhub.core import get_settings
from approvalhub.factory import create_app

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "approvalhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
