"""Module entrypoint for running the pool command line."""

from __future__ import annotations

from scratchorg_pool.cli import app


def main() -> None:  # pragma: no cover - CLI entry
    app(prog_name="scratchorg-pool")


if __name__ == "__main__":  # pragma: no cover
    main()
