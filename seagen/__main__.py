# File: seagen/__main__.py
"""
Seagen — Module entry point.

Allows running the generator directly via::

    python -m seagen --schema schema.yaml --project ./my_crate

This module simply delegates to the CLI entry point defined in ``seagen.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from seagen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
