"""
Entry point for running the hoverkit CLI as a module.

Usage: python -m hoverkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
