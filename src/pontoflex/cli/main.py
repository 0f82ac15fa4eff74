"""PontoFlex CLI entry point - assembles all command groups."""
import logging

import click

from pontoflex import __version__

from .geo_cmd import geo
from .offline_cmd import offline


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Log receipts and sync details')
def cli(verbose: bool):
    """PontoFlex: offline point registration tools."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


cli.add_command(offline)
cli.add_command(geo)


if __name__ == "__main__":
    cli()
