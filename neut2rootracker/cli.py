"""
Command-line interface for neut2rootracker.

Usage:
    neut2rootracker convert -i "neutvect_*.root" -o vector.ntrac.root [-G] [-L] [-E] [-S]
    neut2rootracker info "neutvect_*.root"
    neut2rootracker doctor
"""

from __future__ import annotations

import argparse
import json
import sys

import neut2rootracker

from .config import DEFAULT_CAPACITY, DEFAULT_OUTPUT, ConversionConfig, EnergyUnit
from .errors import ConversionError
from .log import configure_logging

# Conversion completed but --validate found errors
EXIT_VALIDATION_FAILED = 64


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="neut2rootracker",
        description="Convert NEUT vector files to the RooTracker event record format.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {neut2rootracker.__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- convert ---
    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert NEUT vectors to RooTracker",
        description="Convert NEUT vector files (ROOT or Parquet) to a RooTracker tree.",
    )
    convert_parser.add_argument(
        "-i", dest="input", required=True,
        help="Input file descriptor: glob pattern(s), comma separated",
    )
    convert_parser.add_argument(
        "-o", dest="output", default=DEFAULT_OUTPUT,
        help=f"Output file name (default: {DEFAULT_OUTPUT})",
    )
    convert_parser.add_argument(
        "-n", dest="max_events", type=int, default=-1,
        help="Number of entries to process (-1 for all)",
    )
    convert_parser.add_argument(
        "-v", dest="verbosity", type=int, default=0, choices=range(0, 5), metavar="{0-4}",
        help="Verbosity level (0-4)",
    )
    convert_parser.add_argument(
        "-G", dest="gev", action="store_true",
        help="Write momenta and energies in GeV (NEUT uses MeV)",
    )
    convert_parser.add_argument(
        "-L", dest="lite", action="store_true",
        help="Lite mode: only EvtCode, EvtNum and the StdHep particle stack",
    )
    convert_parser.add_argument(
        "-E", dest="emulate_nuwro", action="store_true",
        help="Emulate NuWro: target and struck nucleon in one StdHep slot",
    )
    convert_parser.add_argument(
        "-S", dest="skip_non_fs", action="store_true",
        help="Skip particles that are neither initial nor good final state",
    )
    convert_parser.add_argument(
        "-b", dest="save_is_bound", action="store_true",
        help="Add the IsBound branch",
    )
    convert_parser.add_argument(
        "--save-struck-nucleon-pdg", action="store_true",
        help="Add the StruckNucleonPDG branch (implied by -E)",
    )
    convert_parser.add_argument(
        "-I", dest="ignore_modes", default="",
        help="Comma separated interaction modes to skip, e.g. 1,2,27",
    )
    convert_parser.add_argument(
        "--capacity", type=int, default=DEFAULT_CAPACITY,
        help=f"Number of StdHep slots per event (default: {DEFAULT_CAPACITY})",
    )
    convert_parser.add_argument(
        "--from", dest="input_format", default=None,
        help="Input format (auto-detected from extension if omitted)",
    )
    convert_parser.add_argument(
        "--to", dest="output_format", default=None,
        help="Output format (auto-detected from extension if omitted)",
    )
    convert_parser.add_argument(
        "--validate", action="store_true",
        help="Check every written record for consistency",
    )
    convert_parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Only report errors",
    )

    # --- info ---
    info_parser = subparsers.add_parser(
        "info",
        help="Show information about NEUT input files",
    )
    info_parser.add_argument("input", help="Input file descriptor")
    info_parser.add_argument(
        "--format", dest="input_format", default=None,
        help="Input format (auto-detected if omitted)",
    )
    info_parser.add_argument(
        "--max-events", type=int, default=-1,
        help="Maximum number of entries to scan (-1 for all)",
    )
    info_parser.add_argument(
        "--json", dest="as_json", action="store_true",
        help="Output as JSON",
    )

    # --- doctor ---
    doctor_parser = subparsers.add_parser(
        "doctor",
        help="Environment & capability check",
    )
    doctor_parser.add_argument("--json", dest="as_json", action="store_true")

    return parser


def _config_from_args(args: argparse.Namespace) -> ConversionConfig:
    return ConversionConfig.from_options(
        input_descriptor=args.input,
        output_path=args.output,
        input_format=args.input_format,
        output_format=args.output_format,
        max_events=args.max_events,
        verbosity=args.verbosity,
        lite_mode=args.lite,
        energy_unit=EnergyUnit.GEV if args.gev else EnergyUnit.MEV,
        emulate_nuwro=args.emulate_nuwro,
        skip_non_fs=args.skip_non_fs,
        save_is_bound=args.save_is_bound,
        save_struck_nucleon_pdg=args.save_struck_nucleon_pdg,
        ignore_modes=args.ignore_modes,
        capacity=args.capacity,
        validate=args.validate,
    )


def _cmd_convert(args: argparse.Namespace) -> int:
    from .convert import convert

    configure_logging(-1 if args.quiet else args.verbosity)

    try:
        config = _config_from_args(args)
        summary = convert(config)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except (ValueError, FileNotFoundError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print(f"Wrote {summary.n_written} entries to {summary.output_path}", file=sys.stderr)
        if summary.n_ignored:
            print(f"Ignored {summary.n_ignored} entries by interaction mode", file=sys.stderr)

    if summary.validation is not None:
        report = summary.validation
        if not args.quiet or not report.is_valid:
            print(str(report), file=sys.stderr)
        if not report.is_valid:
            return EXIT_VALIDATION_FAILED

    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    from .doctor import doctor_report

    rep = doctor_report()
    if args.as_json:
        print(json.dumps(rep, indent=2, sort_keys=True))
    else:
        print(rep["summary"])
        for item in rep["checks"]:
            status = "OK" if item["ok"] else "FAIL"
            print(f"- {status}: {item['name']}: {item['detail']}")
    return 0 if all(c["ok"] for c in rep["checks"]) else 2


def _cmd_info(args: argparse.Namespace) -> int:
    from .convert import info

    try:
        result = info(args.input, format=args.input_format, max_events=args.max_events)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except (ValueError, FileNotFoundError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.as_json:
        # Make JSON-serializable
        serializable = dict(result)
        serializable["top_particles"] = [list(t) for t in result["top_particles"]]
        serializable["mode_counts"] = {str(k): v for k, v in result["mode_counts"].items()}
        serializable["status_counts"] = {str(k): v for k, v in result["status_counts"].items()}
        print(json.dumps(serializable, indent=2))
    else:
        print(f"Format:              {result['format']}")
        print(f"Files:               {len(result['files'])}")
        for f in result["files"]:
            hists = "yes" if f["flux_integral"] is not None and f["event_rate_integral"] is not None else "no"
            print(f"  {f['path']}: {f['n_entries']} entries, weight histograms: {hists}")
        print(f"Entries:             {result['n_entries']}")
        print(f"Events scanned:      {result['n_events']}")
        print(f"Total particles:     {result['total_particles']}")
        print(f"Avg particles/event: {result['avg_particles_per_event']:.1f}")

        if result['mode_counts']:
            print(f"Interaction modes:   {result['mode_counts']}")

        if result['status_counts']:
            print(f"Status codes:        {result['status_counts']}")

        if result['top_particles']:
            print("Top particles:")
            for name, count in result['top_particles'][:10]:
                print(f"  {name:>20s}: {count}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "convert": _cmd_convert,
        "info": _cmd_info,
        "doctor": _cmd_doctor,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
