"""Run script.

Lets `python -m main` work from inside `src/` next to the installed
`hostdiff` console script.
"""

from __future__ import annotations

import sys

# Windows terminals default to cp1252; the diff output uses non-ASCII arrows.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
