"""
Entry point for running PontoFlex as a module.

Usage:
    python -m pontoflex [command] [options]

Example:
    python -m pontoflex offline status
    python -m pontoflex offline sync
    python -m pontoflex geo distance -23.5505 -46.6333 -23.5510 -46.6340
"""

from pontoflex.cli.main import cli

if __name__ == "__main__":
    cli()
