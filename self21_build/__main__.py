"""Entry point for ``python -m self21_build``."""

from self21_build.cli import run

if __name__ == "__main__":
    run()
