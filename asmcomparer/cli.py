"""Command line entry point.

``compare`` finds DEBUG_SYMBOL in the debug binary, disassembles it, then
disassembles the original binary at the address (and size) given in the
config, writing orig.asm and compare.asm. Both listings use the function
address from the debug metadata so relative jumps line up.

``generate-full`` writes one listing with every function from the config.
"""
import argparse
import logging
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG_NAME, load_config
from .engine import COMPARE_OUTPUT, ORIG_OUTPUT, compare
from .errors import CoreError, describe, tag_side
from .full import generate_all
from .image import load_image
from .symbols import CvDumpSource, TextFileSource
from .watch import FileChangeTrigger, ResultSlot, run_once, watch_loop


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-i", "--show-ip", action="store_true", default=None,
                        help="Show leading addresses in the output")
    common.add_argument("--no-mem-disp", action="store_true",
                        help="Hide memory displacements and call targets. Cleans up the output "
                             "but can hide wrong stack variables or globals")
    common.add_argument("--no-imms", action="store_true",
                        help="Hide all immediate values")
    common.add_argument("--truncate-to-original", action="store_true", default=None,
                        help="Disassemble only as many bytes of the debug binary as the original "
                             "function has")
    common.add_argument("--x64", action="store_true", help="Decode as 64-bit code")
    common.add_argument("--config", type=Path, default=Path(DEFAULT_CONFIG_NAME),
                        help="Path to the symbol/size table (default: %(default)s)")
    common.add_argument("--pdb", type=Path, help="PDB of the debug binary (default: next to it)")
    common.add_argument("--metadata", type=Path,
                        help="Read pre-dumped cvdump output instead of running cvdump")
    common.add_argument("--cvdump", default="cvdump.exe", help="cvdump executable")
    common.add_argument("-v", "--verbose", action="store_true")

    ap = argparse.ArgumentParser(
        prog="asm-comparer",
        description="Generate aligned disassembly of a function from two binaries",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    cmp_ = sub.add_parser("compare", parents=[common], help="Compare one function")
    cmp_.add_argument("orig_file", type=Path, help="Original binary without debug info")
    cmp_.add_argument("compare_file", type=Path, help="Debug binary; its PDB must sit next to it")
    cmp_.add_argument("symbol", help="Function name to compare")
    cmp_.add_argument("-w", "--watch", action="store_true",
                      help="Regenerate the output files whenever the PDB changes")
    cmp_.add_argument("--output-dir", type=Path, default=Path("."))

    full = sub.add_parser("generate-full", parents=[common],
                          help="Disassemble every function listed in the config")
    full.add_argument("file", type=Path, help="Binary to disassemble")
    full.add_argument("--orig-file", action="store_true",
                      help="FILE is the original binary; skip functions without a size")
    full.add_argument("--output", type=Path, help="Output file (default: <FILE stem>.asm)")
    return ap


def metadata_source_for(args, binary: Path):
    if args.metadata:
        return TextFileSource(args.metadata)
    return CvDumpSource(args.pdb or binary.with_suffix(".pdb"), args.cvdump)


def run_compare(args, config) -> int:
    options = config.options.with_overrides(
        show_addresses=args.show_ip,
        show_memory_displacements=False if args.no_mem_disp else None,
        show_immediates=False if args.no_imms else None,
        truncate_to_reference_length=args.truncate_to_original,
        bits=64 if args.x64 else None,
    )
    source = metadata_source_for(args, args.compare_file)

    def run():
        # binaries may have been rebuilt since the last run
        try:
            compare_image = load_image(args.compare_file)
        except CoreError as exc:
            raise tag_side(exc, "compare")
        try:
            orig_image = load_image(args.orig_file)
        except CoreError as exc:
            raise tag_side(exc, "orig")
        return compare(
            compare_image, orig_image, args.symbol, source, config.size_table, options,
            orig_out=args.output_dir / ORIG_OUTPUT,
            compare_out=args.output_dir / COMPARE_OUTPUT,
        )

    slot = ResultSlot()
    result = run_once(run, args.symbol, slot)
    if not args.watch:
        return 0 if result is not None else 1

    try:
        trigger = FileChangeTrigger([source.watch_path])
    except OSError as exc:
        logging.error("Cannot watch for changes: %s", exc)
        return 2
    logging.info("Started watching %s for changes. CTRL+C to quit.", source.watch_path)
    try:
        watch_loop(trigger, run, args.symbol, slot)
    except KeyboardInterrupt:
        trigger.close()
    return 0


def run_generate_full(args, config) -> int:
    options = config.options.with_overrides(
        show_addresses=args.show_ip,
        show_memory_displacements=False if args.no_mem_disp else None,
        show_immediates=False if args.no_imms else None,
        bits=64 if args.x64 else None,
    )
    out_path = args.output or Path(args.file.stem + ".asm")
    try:
        image = load_image(args.file)
        text = None
        if not args.orig_file:
            text = metadata_source_for(args, args.file).get_metadata_text()
        result = generate_all(image, config.size_table, args.orig_file, options, out_path, text)
    except CoreError as exc:
        logging.error(describe(exc))
        return 1
    if args.orig_file and result.skipped:
        logging.info("%d functions without a size were skipped", result.skipped)
    return 0 if not result.failed else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] %(message)s")
    try:
        config = load_config(args.config)
    except ValueError as exc:
        logging.error("Invalid config %s: %s", args.config, exc)
        return 1
    if args.command == "compare":
        return run_compare(args, config)
    return run_generate_full(args, config)


if __name__ == "__main__":
    sys.exit(main())
