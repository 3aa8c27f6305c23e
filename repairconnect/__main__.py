"""
Convenience entry point for running repairconnect as a module.

Usage: python -m repairconnect [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
