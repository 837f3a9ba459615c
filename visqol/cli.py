"""
Command-line Runner
===================

Thin wrapper around VisqolManager and BatchProcessor.

Usage:
    visqol --reference ref.wav --degraded deg.wav
    visqol --batch-input pairs.csv --output results/ --workers 4
    visqol --reference ref.wav --degraded deg.wav --fullband --model model.joblib
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .batch import BatchProcessor, read_pairs_csv
from .config import DEFAULT_CONFIG, Fullband, Wideband
from .errors import VisqolError
from .manager import VisqolManager


def setup_logging(output_dir: Optional[str] = None, verbose: bool = False) -> Optional[str]:
    """Configure logging for the runner."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler()]
    log_file = None

    if output_dir:
        log_dir = Path(output_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = str(log_dir / f"visqol_{timestamp}.log")
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        handlers=handlers,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger('numba').setLevel(logging.WARNING)
    logging.getLogger('audioread').setLevel(logging.WARNING)

    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="visqol",
        description="Objective audio quality (MOS-LQO) from a reference/degraded pair",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Score one speech pair
  visqol --reference ref.wav --degraded deg.wav

  # Score a list of pairs with 4 workers
  visqol --batch-input pairs.csv --output results --workers 4

  # Full-band audio with a trained model
  visqol -r ref.wav -g deg.wav --fullband --model model.joblib
        """
    )

    parser.add_argument('--reference', '-r', type=str, help='Reference audio file')
    parser.add_argument('--degraded', '-g', type=str, help='Degraded audio file')
    parser.add_argument(
        '--batch-input', '-b',
        type=str,
        metavar='CSV_FILE',
        help='CSV with reference,degraded columns (batch mode)'
    )
    parser.add_argument(
        '--fullband',
        action='store_true',
        help='Full-band audio mode (requires --model)'
    )
    parser.add_argument('--model', '-m', type=str, help='Regression model for full-band mode')
    parser.add_argument(
        '--use-unscaled-mapping',
        action='store_true',
        help='Speech mode: return the raw fitted MOS instead of the 1-5 scaled value'
    )
    parser.add_argument(
        '--search-window',
        type=int,
        default=DEFAULT_CONFIG.DEFAULT_SEARCH_WINDOW,
        help=f'Patch search radius in frames (default: {DEFAULT_CONFIG.DEFAULT_SEARCH_WINDOW})'
    )
    parser.add_argument(
        '--workers', '-w',
        type=int,
        default=1,
        help='Number of parallel workers (default: 1)'
    )
    parser.add_argument('--output', '-o', type=str, help='Output directory for results and logs')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    batch_mode = args.batch_input is not None
    if not batch_mode and not (args.reference and args.degraded):
        parser.error("either --batch-input or both --reference and --degraded are required")
    if args.fullband and not args.model:
        parser.error("--fullband requires --model")

    setup_logging(args.output, args.verbose)
    logger = logging.getLogger(__name__)

    variant = Fullband(model_path=args.model) if args.fullband else Wideband(
        use_unscaled_mos_mapping=args.use_unscaled_mapping
    )

    try:
        if batch_mode:
            manager = VisqolManager(variant, args.search_window)
            processor = BatchProcessor(manager, n_workers=args.workers)
            df = processor.run(read_pairs_csv(args.batch_input), output_dir=args.output)

            print(df[["reference", "degraded", "moslqo", "success"]].to_string(index=False))
            return 0 if len(df) and df["success"].all() else 1

        manager = VisqolManager(variant, args.search_window, n_workers=args.workers)
        result = manager.run(args.reference, args.degraded)

    except VisqolError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    print(f"MOS-LQO: {result.moslqo:.4f}")
    if args.output:
        out_path = Path(args.output) / "result.json"
        with open(out_path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.info(f"Saved result: {out_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
