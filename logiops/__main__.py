"""
Run the API with uvicorn.

Example:
  python -m logiops

Host, port and reload come from LOGIOPS_HOST, LOGIOPS_PORT and
LOGIOPS_RELOAD (environment or .env).
"""

import uvicorn

from logiops.core.config import get_config


def main() -> None:
    settings = get_config().env
    uvicorn.run(
        "logiops.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()
