import argparse
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class _Command:
    help: str
    add_arguments: Callable[[argparse.ArgumentParser], None]
    run: Callable[[argparse.Namespace], int]


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be a positive integer.")
    return parsed


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError("Value must be a non-negative integer.")
    return parsed


def _run_pick_batch_size(args: argparse.Namespace) -> int:
    from batchmap.mapping.batches import pick_batch_size

    size = pick_batch_size(list(range(args.n_markers)), args.size, args.overlap, args.around)
    print(size)
    return 0


def _run_batches(args: argparse.Namespace) -> int:
    from batchmap.mapping.batches import generate_overlapping_batches

    batches = generate_overlapping_batches(list(range(args.n_markers)), args.size, args.overlap)
    if not batches:
        print(f"No batch of size {args.size} fits {args.n_markers} markers.", file=sys.stderr)
        return 1
    print("batch\tfirst\tlast\tn_markers")
    for i, batch in enumerate(batches, start=1):
        print(f"{i}\t{batch.markers[0] + 1}\t{batch.markers[-1] + 1}\t{len(batch)}")
    return 0


def _add_planning_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--n-markers",
        dest="n_markers",
        required=True,
        type=_positive_int,
        help="Number of ordered markers in the linkage group.",
    )
    parser.add_argument(
        "--size",
        dest="size",
        default=50,
        type=_positive_int,
        help="Nominal batch size.",
    )
    parser.add_argument(
        "--overlap",
        dest="overlap",
        default=15,
        type=_non_negative_int,
        help="Overlap between consecutive batches.",
    )


def _add_pick_batch_size_arguments(parser: argparse.ArgumentParser) -> None:
    _add_planning_arguments(parser)
    parser.add_argument(
        "--around",
        dest="around",
        default=5,
        type=_non_negative_int,
        help="Largest distance from --size to search.",
    )


_COMMANDS: Dict[str, _Command] = {
    "pick-batch-size": _Command(
        help="Suggest the batch size that splits a linkage group most evenly.",
        add_arguments=_add_pick_batch_size_arguments,
        run=_run_pick_batch_size,
    ),
    "batches": _Command(
        help="List the overlapping batches of a linkage group.",
        add_arguments=_add_planning_arguments,
        run=_run_batches,
    ),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batchmap",
        description="batchmap command-line interface",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    subparsers = parser.add_subparsers(dest="command")

    for name, command in _COMMANDS.items():
        subparser = subparsers.add_parser(name, help=command.help, description=command.help)
        command.add_arguments(subparser)
        subparser.set_defaults(_handler=command.run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args_list = sys.argv[1:] if argv is None else argv
    if not args_list:
        parser.print_help(sys.stderr)
        return 1

    args = parser.parse_args(args_list)
    if args.version:
        from batchmap import __version__

        print(f"batchmap version {__version__}")
        return 0
    handler = getattr(args, "_handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return 1
    return int(handler(args))
