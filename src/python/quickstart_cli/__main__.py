"""Entry point for quickstart_cli."""

from .cli import cli


def main() -> None:
    """Entry point for the quickstart CLI."""
    cli()


if __name__ == "__main__":
    main()
