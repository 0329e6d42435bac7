"""Entry point for 'python -m sqimo' command."""

from sqimo.cli import main

if __name__ == "__main__":
    main()
