# Command-line interface: argparse commands, rich output and logging setup
