"""Agora CLI entry point"""

import click

from .command import init, start


@click.group(
    name="agora",
    help="Agora - social messaging backend",
)
def main():
    """Main CLI entry point"""
    pass


main.add_command(init)
main.add_command(start)


if __name__ == "__main__":
    main()
