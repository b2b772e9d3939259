"""Main entry point for the uptime monitor."""

from gjallarhorn.server import main


if __name__ == "__main__":
    main()
