"""Entry point for running Parley as a module."""

from parley.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
