from __future__ import annotations

import uvicorn

from moodflix.core.config import log_level, server_settings


def main() -> None:
    settings = server_settings()
    uvicorn.run(
        "moodflix.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=log_level().lower(),
    )


if __name__ == "__main__":
    main()
