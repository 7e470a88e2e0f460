"""Run the server: `python -m todo_app` (or the `todo-app` console script)."""
import sys

import uvicorn

from todo_app.config import ConfigError, load_settings
from todo_app.main import create_app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
