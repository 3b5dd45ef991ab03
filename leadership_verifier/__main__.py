"""Package entry point for ``python -m leadership_verifier``."""
from __future__ import annotations

import sys

from . import cli

PROG = "python -m leadership_verifier"


def main(argv: list[str] | None = None) -> int:
    """Run the CLI under the module name so usage and help text match how it was invoked."""

    return cli.main(sys.argv[1:] if argv is None else argv, prog=PROG)


if __name__ == "__main__":  # pragma: no cover - module entry point
    sys.exit(main())
