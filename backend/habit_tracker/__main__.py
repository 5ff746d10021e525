"""Run the API server: `python -m habit_tracker`."""

import uvicorn

from habit_tracker.config import settings


def main() -> None:
    uvicorn.run(
        "habit_tracker.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
