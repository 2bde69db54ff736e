"""Allow ``python -m worldsync``."""

from .cli import main

main()
