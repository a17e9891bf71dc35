"""Module entrypoint for ``python -m pdbconf``."""

from __future__ import annotations

from pdbconf.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
