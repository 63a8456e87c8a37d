"""Console entry point.

Why it exists:
- Gives the `rexray` console script a stable target.
- Allows running the CLI with `python -m rexray.main` during development.
"""

from __future__ import annotations

from rexray.cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
