"""Allow ``python -m bulwark``."""

from bulwark.cli import app

if __name__ == "__main__":
    app()
