"""
Main entry point for the pig game server.

Usage:
    python -m server.main

Or:
    pig-game-server
"""

from server.network.server import main


if __name__ == "__main__":
    main()
