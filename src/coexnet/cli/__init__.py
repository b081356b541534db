"""
coexnet CLI - Command-line interface for co-expression network analysis.

Commands:
    coexnet run         - Network construction, module detection, trait association
    coexnet pick-power  - Scale-free fit table for candidate soft powers
"""

import argparse
import sys
from typing import Optional, List

from coexnet import __version__


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for coexnet."""
    parser = argparse.ArgumentParser(
        prog="coexnet",
        description="Weighted co-expression network analysis for omics tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run          Build the network, detect modules, associate them with traits
  pick-power   Print the scale-free fit table for candidate soft powers

Examples:
  coexnet pick-power --input lipids.csv --powers 1-20
  coexnet run --input lipids.csv --trait group --output results/
  coexnet run --input data.csv --trait group --config network.yaml --workers 4
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from coexnet.cli import pick_power, run
    run.register_parser(subparsers)
    pick_power.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
