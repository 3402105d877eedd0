#!/usr/bin/env python3

import os
import sys
import argparse
import asyncio
import logging
from typing import Any, Dict, List, Optional

from .build.orchestrator import BuildOrchestrator
from .config.manager import ConfigManager, DEFAULT_CONFIG_FILE, packages_from_package_json
from .errors import SharedDepsError

def setup_logging(level: str = "WARNING", log_file: Optional[str] = None):
    """Configure logging for the application"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers
    )

def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser"""
    parser = argparse.ArgumentParser(
        prog="shared-deps",
        description="Self-hosted shared dependencies builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                    # Build using ./shared-deps.yaml
  %(prog)s build deps.yaml                    # Build using another config file
  %(prog)s build --clean --log-level warn
  %(prog)s build --from-package-json          # Mirror the dependencies of ./package.json
  %(prog)s build --skip-url https://cdn.example.com/npm/
        """
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=["build"],
        default="build",
        help="Command to run"
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help=f"Path to the build config (default: $SHARED_DEPENDENCIES_CONFIG or {DEFAULT_CONFIG_FILE})"
    )

    parser.add_argument(
        "--output-dir", "-o",
        help="Directory the packages are written to"
    )

    parser.add_argument(
        "--clean",
        action="store_true",
        default=None,
        help="Remove the output directory before building"
    )

    parser.add_argument(
        "--absolute-dir",
        action="store_true",
        default=None,
        help="Allow --clean with an absolute output directory"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["debug", "warn", "fatal"],
        help="Build output verbosity"
    )

    parser.add_argument(
        "--skip-url",
        help="Skip versions already served below this URL"
    )

    parser.add_argument(
        "--dockerfile",
        action="store_true",
        default=None,
        help="Write a Dockerfile serving the output directory"
    )

    parser.add_argument(
        "--from-package-json",
        nargs="?",
        const="package.json",
        default=None,
        metavar="PATH",
        help="Take the package list from the dependencies of a package.json"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show internal diagnostics"
    )

    parser.add_argument(
        "--log-file",
        help="Also write internal diagnostics to this file"
    )

    return parser

def load_build_config(args) -> Dict[str, Any]:
    """Read the config file and apply command-line overrides"""
    config_manager = ConfigManager(args.config)

    overrides = {
        'outputDir': args.output_dir,
        'clean': args.clean,
        'absoluteDir': args.absolute_dir,
        'logLevel': args.log_level,
        'skipMirrorUrl': args.skip_url,
        'generateDeploymentFile': args.dockerfile,
    }

    if args.from_package_json and not os.path.exists(config_manager.config_path):
        raw = {key: value for key, value in overrides.items() if value is not None}
    else:
        raw = config_manager.get_config(overrides)

    if args.from_package_json:
        raw['packages'] = packages_from_package_json(args.from_package_json)

    return raw

async def cmd_build(args) -> int:
    """Handle build command"""
    raw = load_build_config(args)
    summary = await BuildOrchestrator(raw).build()
    logging.getLogger(__name__).info(
        f"Extracted {len(summary.extracted)} versions, skipped {len(summary.skipped)}"
    )
    return 0

async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING", args.log_file)
    logger = logging.getLogger(__name__)

    try:
        if args.command == "build":
            return await cmd_build(args)

        parser.print_help()
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except (SharedDepsError, ValueError) as e:
        print(e, file=sys.stderr)
        return 1

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
