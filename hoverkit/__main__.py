"""
Entry point for running hoverkit as a module.

Usage: python -m hoverkit [command] [options]
"""

from hoverkit.cli.parser import main

if __name__ == "__main__":
    main()
