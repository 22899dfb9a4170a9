"""Entry point for the bento-profile CLI."""

import sys

from bento_profile.cli.commands import cli_main


def main() -> int:
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
