"""Allow ``python -m sqlmanage``."""

from sqlmanage.cli import cli

if __name__ == "__main__":
    cli()
