#!/usr/bin/env python3
"""
slnagg – add project files found next to a solution's root folder to the solution.

  slnagg aggregate --solution App.sln --root src/ [--host file]
  slnagg missing   --solution App.sln --root src/
  slnagg serve     [--host-addr 127.0.0.1] [--port 8788]
"""
import argparse
import ipaddress
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from ..core.config import AggregatorConfig, HOST_KINDS
from ..core.errors import PathNotFound
from ..core.reconcile import find_missing
from ..service.models import AggregateRequest
from ..service.runner import AggregationRunner

logger = logging.getLogger("slnagg")


def _is_loopback_host(host: str) -> bool:
    h = (host or "").strip().lower()
    if h in ("127.0.0.1", "localhost", "::1"):
        return True
    try:
        return ipaddress.ip_address(h).is_loopback
    except ValueError:
        return False


def _get_port() -> int:
    raw = os.environ.get("SLNKIT_PORT", "")
    if not raw:
        return 8788
    try:
        return int(raw)
    except ValueError:
        print(f"[slnagg] Warning: Invalid SLNKIT_PORT='{raw}', defaulting to 8788", file=sys.stderr)
        return 8788


def _add_path_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--solution", required=True, help="Solution file (created if it does not exist)")
    p.add_argument("--root", required=True, help="Folder whose project files belong in the solution")
    p.add_argument("--config", default=os.environ.get("SLNKIT_CONFIG"), help="YAML config file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="slnagg", description="Aggregate project files into a solution")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    agg = sub.add_parser("aggregate", help="Add missing projects to the solution")
    _add_path_args(agg)
    agg.add_argument("--host", choices=HOST_KINDS, default=None, help="Automation host (default from config: dte)")
    agg.add_argument("--vs", dest="host_version", default=None, help="Host version: VS2013 or VS2015")
    agg.add_argument("--passes", type=int, default=None)
    agg.add_argument("--attempts", type=int, default=None)
    agg.add_argument("--retry-delay", type=float, default=None)
    agg.add_argument("--stop-on-convergence", action="store_true", default=None)

    miss = sub.add_parser("missing", help="List project files not referenced by the solution")
    _add_path_args(miss)

    srv = sub.add_parser("serve", help="Run the HTTP service")
    srv.add_argument("--host-addr", default=os.environ.get("SLNKIT_HOST_ADDR", "127.0.0.1"))
    srv.add_argument("--port", type=int, default=_get_port())
    srv.add_argument("--token", default=os.environ.get("SLNKIT_TOKEN"), help="Auth token (required for non-loopback)")
    srv.add_argument("--config", default=os.environ.get("SLNKIT_CONFIG"), help="YAML config file")
    return parser


def _load_config(args: argparse.Namespace, **overrides) -> AggregatorConfig:
    return AggregatorConfig.load(args.config, **overrides)


def cmd_aggregate(args: argparse.Namespace) -> int:
    cfg = _load_config(
        args,
        host=args.host,
        passes=args.passes,
        attempts=args.attempts,
        retry_delay=args.retry_delay,
        stop_on_convergence=args.stop_on_convergence,
    )
    request = AggregateRequest(
        solution=str(Path(args.solution).expanduser().resolve()),
        root=str(Path(args.root).expanduser().resolve()),
        host_version=args.host_version or cfg.host_version,
    )
    runner = AggregationRunner(cfg)
    try:
        run = runner.run_sync(request)
    finally:
        runner.shutdown()

    if run.status != "succeeded":
        print(f"[slnagg] Aggregation failed: {run.error}", file=sys.stderr)
        return 1
    if not run.changed:
        print("Solution already complete.")
        return 0
    print(f"Added {len(run.added)} project(s) in {run.passes_run} pass(es).")
    for name in run.added:
        print(f"  + {name}")
    for name in run.failed:
        print(f"  ! {name} (not added)")
    return 0


def cmd_missing(args: argparse.Namespace) -> int:
    cfg = _load_config(args)
    try:
        missing = find_missing(args.solution, args.root, cfg.extensions)
    except PathNotFound as e:
        print(f"[slnagg] Error: {e}", file=sys.stderr)
        return 1
    for c in missing:
        print(c.full_path)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn
    from ..service.app import app, init_service

    if not _is_loopback_host(args.host_addr) and not args.token:
        print(f"[slnagg] Security Error: Refusing to bind to non-loopback host '{args.host_addr}' without a token.", file=sys.stderr)
        print("[slnagg] Hint: Set --token or SLNKIT_TOKEN.", file=sys.stderr)
        return 1

    init_service(config=_load_config(args), token=args.token)
    print(f"[slnagg] Serving on http://{args.host_addr}:{args.port}", file=sys.stderr)
    uvicorn.run(app, host=args.host_addr, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="[%(levelname)s] %(message)s",
    )
    try:
        if args.command == "aggregate":
            return cmd_aggregate(args)
        if args.command == "missing":
            return cmd_missing(args)
        if args.command == "serve":
            return cmd_serve(args)
    except (OSError, ValueError) as e:
        print(f"[slnagg] Error: {e}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
