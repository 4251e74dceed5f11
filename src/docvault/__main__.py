"""
Entry point for running docvault as a module.

Usage:
    python -m docvault [command] [options]

This allows docvault to be executed directly as a Python module,
which is useful for development and testing without installing
the package.
"""

from docvault.cli import main

if __name__ == "__main__":
    main()
