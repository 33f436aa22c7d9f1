"""Allow ``python -m imaplearn``."""

from .cli import main

if __name__ == "__main__":
    main()
