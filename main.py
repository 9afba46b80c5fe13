"""Development entrypoint for the conquest maintenance CLI."""

from __future__ import annotations

import sys

from conquest.main import main

if __name__ == "__main__":
    sys.exit(main())
