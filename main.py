"""Run imaplearn from a source checkout via `python main.py`."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from imaplearn.cli import main  # noqa: E402


if __name__ == "__main__":
    main()
