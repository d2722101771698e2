"""Module entrypoint for running langmesh as ``python -m langmesh``."""

from __future__ import annotations

from langmesh.cli import main


if __name__ == "__main__":
    main()
