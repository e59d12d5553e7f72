"""Run the gateway with uvicorn: ``python -m enhancer``."""

import uvicorn

from enhancer.config import get_settings
from enhancer.main import app


def main() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
