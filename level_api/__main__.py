"""Run with: python -m level_api (or uvicorn level_api.main:app)."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "level_api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
