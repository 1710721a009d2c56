"""Command-line entry point for the DomainLang dependency manager."""

import click

from . import __version__
from .commands.deps import COMMANDS


@click.group(help="DomainLang package manager: resolve, lock and inspect model dependencies")
@click.version_option(version=__version__, prog_name="dlang")
def cli():
    """Main entry point for the dlang CLI."""


for _command in COMMANDS:
    cli.add_command(_command)


def main():
    cli(prog_name="dlang")


if __name__ == "__main__":
    main()
