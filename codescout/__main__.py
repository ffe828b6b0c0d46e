"""Allow ``python -m codescout``."""

from .cli import app

if __name__ == "__main__":
    app()
