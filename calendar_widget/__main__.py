"""Entry point for ``python -m calendar_widget``."""

from .cli import main

if __name__ == "__main__":
    main()
