"""
Command-line interface.

    python -m config_schema validate --schema fruit_schema.json --config fruit.json
    python -m config_schema template --schema fruit_schema.json --output empty_fruit.json
"""

import argparse
import json
import logging
import sys

from config_schema.exceptions import SchemaDefinitionError
from config_schema.schema_builder import build_controller, load_definition
from config_schema.schema_logging import create_logger

logger = create_logger("config_schema.cli")


def _load_controller(schema_path: str, lenient_optional: bool = False):
    definition = load_definition(schema_path)
    return build_controller(definition, optional_failure_invalidates=not lenient_optional)


def run_validate(args: argparse.Namespace) -> int:
    controller = _load_controller(args.schema, args.lenient_optional)
    with open(args.config, "r", encoding="utf-8") as f:
        config = json.load(f)

    result = controller.validate(config)
    for error in result.errors:
        print(error)
    if args.write_defaults:
        with open(args.write_defaults, "w", encoding="utf-8") as f:
            json.dump(result.config, f, indent=4)
            f.write("\n")
        logger.info(f"Wrote config with defaults to {args.write_defaults}")

    if result.valid:
        logger.info(f"{args.config} is valid")
        return 0
    logger.info(f"{args.config} failed validation with {len(result.errors)} errors")
    return 1


def run_template(args: argparse.Namespace) -> int:
    controller = _load_controller(args.schema)
    if args.output == "-":
        controller.write_empty_config(sys.stdout)
    else:
        controller.write_empty_config(args.output)
    return 0


def main(argv=None) -> int:
    """Main entry point for command-line interface."""
    parser = argparse.ArgumentParser(
        prog="config_schema",
        description="Validate JSON configs against a declarative config_schema definition"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Validate a config file")
    validate_parser.add_argument("--schema", required=True, help="Path to schema definition JSON")
    validate_parser.add_argument("--config", required=True, help="Path to config JSON to validate")
    validate_parser.add_argument(
        "--write-defaults",
        help="Write the config with default values filled in to this path"
    )
    validate_parser.add_argument(
        "--lenient-optional",
        action="store_true",
        help="Report failing optional tokens without failing the config"
    )
    validate_parser.set_defaults(handler=run_validate)

    template_parser = subparsers.add_parser("template", help="Write an empty config with help strings")
    template_parser.add_argument("--schema", required=True, help="Path to schema definition JSON")
    template_parser.add_argument("--output", required=True, help="Output path, or - for stdout")
    template_parser.set_defaults(handler=run_template)

    args = parser.parse_args(argv)

    if args.verbose:
        # every module logger sets its own level, so raise each one
        for name in list(logging.root.manager.loggerDict):
            if name.startswith("config_schema"):
                logging.getLogger(name).setLevel(logging.DEBUG)

    try:
        return args.handler(args)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, SchemaDefinitionError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
