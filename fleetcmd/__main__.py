"""Allow ``python -m fleetcmd``."""

from .cli import run

if __name__ == "__main__":
    run()
