"""Command line interface for the project.

Commands:
- show-settings: print the resolved :class:`~medfit.config.Settings`
- bootstrap: fit a mediation model on a CSV file and bootstrap its indirect
  effect

Run parameters come from ``--config`` (YAML validated against
:class:`~medfit.config.BootstrapConfig`) and are overridden by the flags
given on the command line.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from medfit.bootstrap import run
from medfit.config import (
    BootstrapConfig,
    Settings,
    configure_logging,
    get_settings,
    load_config,
)
from medfit.config.constants import BACKENDS, METHODS
from medfit.errors import ConfigurationError, MedfitError
from medfit.mediation import fit_mediation

__all__ = ["build_parser", "main"]

# Flags that map one-to-one onto BootstrapConfig fields.
_CONFIG_FLAGS = ("method", "n_boot", "ci_level", "seed", "parallel", "workers", "backend")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="medfit CLI")
    parser.add_argument(
        "--structured-logs",
        dest="structured_logs",
        action="store_true",
        help="force JSON structured logs",
    )
    parser.add_argument(
        "--plain-logs",
        dest="structured_logs",
        action="store_false",
        help="force plain text logs",
    )
    parser.set_defaults(structured_logs=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show-settings", help="Show the resolved settings")
    show.add_argument("--json", action="store_true", help="JSON output")

    boot = subparsers.add_parser(
        "bootstrap", help="Bootstrap the indirect effect of a mediation model"
    )
    boot.add_argument("--data", required=True, help="CSV file with the observations")
    boot.add_argument("--treatment", required=True, help="Treatment variable (X)")
    boot.add_argument(
        "--mediator",
        required=True,
        action="append",
        help="Mediator variable (M); repeat in causal order for serial mediation",
    )
    boot.add_argument("--outcome", required=True, help="Outcome variable (Y)")
    boot.add_argument(
        "--covariate", action="append", default=[], help="Covariate (repeatable)"
    )
    boot.add_argument("--config", type=str, help="YAML bootstrap configuration")
    boot.add_argument("--method", choices=METHODS, help="Bootstrap method")
    boot.add_argument("--n-boot", dest="n_boot", type=int, help="Bootstrap iterations")
    boot.add_argument("--ci-level", dest="ci_level", type=float, help="Confidence level")
    boot.add_argument("--seed", type=int, help="Random seed")
    boot.add_argument(
        "--parallel", action="store_true", default=None, help="Use a worker pool"
    )
    boot.add_argument("--workers", type=int, help="Worker pool size")
    boot.add_argument("--backend", choices=BACKENDS, help="Worker pool backend")
    boot.add_argument(
        "--distribution",
        action="store_true",
        help="Include the bootstrap distribution in JSON output",
    )
    boot.add_argument("--json", action="store_true", help="JSON output")

    return parser


def _configure_logging(structured: bool | None, settings: Settings, command: str) -> None:
    configure_logging(settings=settings, structured=structured, context={"command": command})


def _print_payload(payload: dict[str, Any], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        for key, value in payload.items():
            print(f"{key}: {value}")


def _bootstrap_config(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    """Merge settings defaults, the YAML file and command line flags (last wins)."""
    options: dict[str, Any] = {
        "backend": settings.default_backend,
        "max_excluded_fraction": settings.max_excluded_fraction,
    }
    if settings.random_seed is not None:
        options["seed"] = settings.random_seed
    if args.config:
        loaded = load_config(args.config, BootstrapConfig, project_root=settings.project_root)
        options.update(loaded.model_dump(exclude_unset=True))
    for name in _CONFIG_FLAGS:
        value = getattr(args, name)
        if value is not None:
            options[name] = value
    return options


def _read_data(path: str) -> pd.DataFrame:
    csv_path = Path(path)
    if not csv_path.exists():
        raise ConfigurationError(f"Data file not found: {path}")
    try:
        return pd.read_csv(csv_path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read data file {path}: {exc}") from exc


def _run_bootstrap(args: argparse.Namespace, settings: Settings) -> None:
    data = _read_data(args.data)
    structure = fit_mediation(
        data,
        treatment=args.treatment,
        mediator=args.mediator,
        outcome=args.outcome,
        covariates=args.covariate,
    )
    result = run(structure, _bootstrap_config(args, settings), settings=settings)
    if args.json:
        _print_payload(result.to_dict(include_distribution=args.distribution), as_json=True)
    else:
        print(structure)
        print()
        print(result)


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    settings = get_settings()
    _configure_logging(args.structured_logs, settings, args.command)

    try:
        if args.command == "show-settings":
            _print_payload(settings.to_dict(), as_json=args.json)
        elif args.command == "bootstrap":
            _run_bootstrap(args, settings)
        else:  # pragma: no cover - defensive fallback
            parser.error(f"Unknown command: {args.command}")
    except MedfitError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
