import argparse
import json
import logging
import sys
from typing import Optional

from psd_json.config import Config
from psd_json.container import Container
from psd_json.convert import convert, update_layers_with_spec
from psd_json.exceptions import Error, InputFormatError
from psd_json.layers import build_layer_info
from psd_json.version import __version__

try:
    from IPython.lib.pretty import pprint
except ImportError:
    from pprint import pprint

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="psd-json command line utility.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Be more verbose.")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--config", help="Config file (default: ./psdjson.config.json if present)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser(
        "convert", help="Convert PSD to JSON or JSON to PSD"
    )
    convert_parser.add_argument("input_file", help="Input .psd or .json file")
    convert_parser.add_argument("-o", "--output", help="Output file")
    convert_parser.add_argument(
        "--output-dir", help="Output directory when no output file is given"
    )
    convert_parser.add_argument(
        "--assets-dir-name", help="Name of the blob directory next to the output"
    )
    convert_parser.add_argument(
        "--assets-dir", help="Blob directory, relative to the JSON container"
    )
    convert_parser.add_argument(
        "--verify",
        action="store_true",
        help="Fail when the container checksum does not match",
    )

    patch_parser = subparsers.add_parser(
        "patch", help="Patch the layer tree of a container"
    )
    patch_parser.add_argument("container_file", help="JSON container")
    patch_parser.add_argument("layers_file", help="Layer info file to rewrite")
    patch_parser.add_argument("spec_file", help="JSON patch spec")

    verify_parser = subparsers.add_parser(
        "verify", help="Check the checksum of a container"
    )
    verify_parser.add_argument("container_file", help="JSON container")

    show_parser = subparsers.add_parser("show", help="Show the layer info of a container")
    show_parser.add_argument("container_file", help="JSON container")

    return parser.parse_args(argv)


def _load_spec(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except ValueError as e:
            raise InputFormatError("Invalid patch spec %s: %s" % (path, e)) from e


def main(argv: Optional[list[str]] = None) -> Optional[int]:
    args = parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    package_logger = logging.getLogger("psd_json")
    if args.verbose:
        package_logger.setLevel(logging.DEBUG)
    else:
        package_logger.setLevel(logging.INFO)

    try:
        config = Config.load(args.config) if args.config else Config.auto()

        if args.command == "convert":
            config = config.evolve(
                output_dir=args.output_dir, assets_dir_name=args.assets_dir_name
            )
            result = convert(
                args.input_file,
                args.output,
                config=config,
                assets_dir=args.assets_dir,
                verify=args.verify,
            )
            print(result.abs_out)

        elif args.command == "patch":
            spec = _load_spec(args.spec_file)
            result = update_layers_with_spec(
                args.container_file, args.layers_file, spec
            )
            print(result.abs_out)
            print(result.layers_abs_out)

        elif args.command == "verify":
            if not Container.load(args.container_file).verify():
                return 1
            logger.info("Checksum OK")

        elif args.command == "show":
            container = Container.load(args.container_file)
            pprint(build_layer_info(container.tree, container.meta.assets_dir or "."))

    except (Error, OSError) as e:
        logger.error(str(e))
        return 1

    return None


if __name__ == "__main__":
    sys.exit(main())
