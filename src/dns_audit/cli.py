import argparse
import contextlib
import functools
import sys
from typing import Iterator, List, Optional, Sequence, TextIO

from audit.models import DomainResult
from reporting.analytics import ReportAnalyzer
from reporting.assembler import Assemble
from reporting.targets import read_specs

from .config import AuditSettings
from .engine import build_engine
from .errors import ConfigError, ParseError
from .log import configure

"""
The command-line interface for the DNS delegation audit.

Flow:
  1) Load the root zone and (optionally) the performance cache
  2) Probe root servers that have no fresh measurement, optionally write the cache
  3) Audit every domain in the list, once or in watch mode
  4) Write the result JSON and exit 0 (all passed), 2 (a domain failed) or 1 (anything else)
"""

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILED = 2


# Parse the command-line arguments
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="dns-audit",
        description="Audit domains against their authoritative nameservers, starting from the root",
    )
    p.add_argument("--root-zone", required=True, metavar="PATH", help="Root zone file (root.zone or named.root)")
    p.add_argument("-c", dest="config", metavar="FILE", help="JSON domain list, or - for stdin")
    p.add_argument("-o", dest="output", default="-", metavar="FILE", help="Write results as JSON, or - for stdout")
    p.add_argument("--cache-in", metavar="FILE", help="Read root server performance cache")
    p.add_argument("--cache-out", metavar="FILE", help="Write root server performance cache")
    p.add_argument("--all", dest="include_all", action="store_true",
                   help="Write all results; by default only failures are written")
    p.add_argument("-w", "--watch", type=float, metavar="SECONDS",
                   help="Repeat the audit every SECONDS until a domain fails")

    # Defaults come from AuditSettings / environment; flags override them.
    p.add_argument("--threads", type=int, help="Domains audited in parallel (default 1)")
    p.add_argument("--timeout", type=float, help="Per-query timeout in seconds (default 5)")
    p.add_argument("--probe-attempts", type=int, help="Priming queries per root server address (default 3)")
    p.add_argument("--no-probe", action="store_true", help="Use the cache as-is; do not probe root servers")
    p.add_argument("--no-ipv6", action="store_true", help="Only contact servers over IPv4")
    p.add_argument("--summary", action="store_true", help="Print a per-flag summary to stderr after each pass")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Verbose logging (repeat for debug)")

    args = p.parse_args(argv)
    if args.watch is not None and args.watch <= 0:
        p.error("-w must be a positive number of seconds")
    return args


def settings_from_args(args: argparse.Namespace) -> AuditSettings:
    """Environment defaults, overridden by whatever was given on the command line."""
    s = AuditSettings.from_env()
    s.root_zone = args.root_zone
    s.cache_in = args.cache_in
    s.cache_out = args.cache_out
    if args.threads is not None:
        s.threads = args.threads
    if args.timeout is not None:
        s.timeout = args.timeout
    if args.probe_attempts is not None:
        s.probe_attempts = args.probe_attempts
    if args.no_ipv6:
        s.use_ipv6 = False
    s.validate()
    return s


@contextlib.contextmanager
def open_output(path: str) -> Iterator[TextIO]:
    if path == "-":
        yield sys.stdout
        return
    with open(path, "w", encoding="utf-8") as fh:
        yield fh


def print_summary(results: Sequence[DomainResult]) -> None:
    """
    Print a readable per-flag breakdown of one pass to stderr.

    Args:
        results: One pass of the orchestrator.
    """
    analyzer = ReportAnalyzer()
    a = analyzer.analytics(analyzer.results_frame(results))
    failed = sum(1 for r in results if not r.success)

    print(f"\n== {len(results)} domains | Failed: {failed} ==", file=sys.stderr)
    if a["counts_by_flag"].empty:
        print("No findings.", file=sys.stderr)
        return
    print(a["counts_by_flag"].to_string(index=False), file=sys.stderr)
    print(a["failing_domains"].to_string(index=False), file=sys.stderr)


def emit_results(out: TextIO, include_all: bool, summary: bool, results: List[DomainResult]) -> None:
    Assemble().write(out, results, include_all=include_all)
    if summary:
        print_summary(results)


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entrypoint.

    Returns:
        Process exit code.
    """
    args = parse_args(argv)
    configure(args.verbose)

    try:
        settings = settings_from_args(args)
        engine = build_engine(settings)

        specs = read_specs(args.config) if args.config else []
        if not specs and not args.cache_out:
            print("Nothing to audit: pass a domain list with -c", file=sys.stderr)
            return EXIT_ERROR

        if not args.no_probe:
            print("Testing root nameservers...", file=sys.stderr)
            engine.probe()
        if args.cache_out:
            engine.save_cache(args.cache_out)

        if not specs:
            return EXIT_OK

        with open_output(args.output) as out:
            emit = functools.partial(emit_results, out, args.include_all, args.summary)
            if args.watch is not None:
                results = engine.orchestrator.watch(specs, args.watch, emit)
            else:
                results = engine.orchestrator.run_once(specs)
                emit(results)

    except (ParseError, ConfigError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    return EXIT_FAILED if any(not r.success for r in results) else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
