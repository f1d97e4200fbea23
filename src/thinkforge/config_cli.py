"""`thinkforge config` command: init, validate and path."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from . import config as config_mod
from .core.cli import print_error, to_path

__all__ = ["main"]


def _init(args: argparse.Namespace) -> int:
    target = config_mod.resolve_config_path(explicit_path=to_path(args.path))
    config_mod.write_template(target, overwrite=args.force)
    print(f"Wrote config template to {target}")
    return 0


def _validate(args: argparse.Namespace) -> int:
    cfg = config_mod.load_config(explicit_path=to_path(args.path))
    if args.quiet:
        return 0
    summary = {
        "data_home": cfg.data_home or "(default)",
        "inference": f"{cfg.inference.provider} / {cfg.inference.model}",
        "backend_url": cfg.backend.url or "(from environment)",
        "subjects": ", ".join(cfg.quiz.subjects),
    }
    print("Configuration OK")
    for key, value in summary.items():
        print(f"  {key}: {value}")
    return 0


def _path(args: argparse.Namespace) -> int:
    print(config_mod.resolve_config_path(explicit_path=to_path(args.path)))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    location = argparse.ArgumentParser(add_help=False)
    location.add_argument(
        "--path",
        help="Config TOML to use instead of the resolved default location.",
    )

    parser = argparse.ArgumentParser(
        prog="thinkforge config",
        description="Manage the ThinkForge configuration file.",
    )
    actions = parser.add_subparsers(dest="action", required=True)

    init = actions.add_parser(
        "init", parents=[location], help="Write the default template."
    )
    init.add_argument(
        "--force", action="store_true", help="Overwrite an existing file."
    )
    init.set_defaults(handler=_init)

    validate = actions.add_parser(
        "validate", parents=[location], help="Check the active config file."
    )
    validate.add_argument(
        "--quiet", action="store_true", help="Only report errors."
    )
    validate.set_defaults(handler=_validate)

    path = actions.add_parser(
        "path", parents=[location], help="Print the resolved config path."
    )
    path.set_defaults(handler=_path)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except config_mod.ConfigError as exc:
        print_error(str(exc))
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
