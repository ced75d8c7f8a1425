import argparse
import logging
import os
import sys
from typing import List, Optional

from .files import open_text, open_output
from .ld import DEFAULT_MIN_COUNT
from .msformat import MsReader, MsFormatError
from .pipeline import PipelineConfig, ConfigError, run_pipeline

# Configure logging (stderr; stdout carries the table)
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog='msstats-recomb',
        description='Recombination and diversity summaries of ms replicates, with optional resampling',
        add_help=False,
    )
    ap.add_argument('input', nargs='?', default='-',
                    help="ms output file ('-' or omitted for stdin; .gz accepted)")
    ap.add_argument('-q', dest='subsample', type=int, default=None, metavar='N',
                    help='sequences in subsample (default: total sample size)')
    ap.add_argument('-p', dest='permutations', type=int, default=1, metavar='N',
                    help='number of resampling rounds per replicate (default 1)')
    ap.add_argument('-h', '--help', action='store_true', help='print usage and exit')
    ap.add_argument('-o', '--out', default='-', help="output TSV ('-' for stdout)")
    ap.add_argument('--min-count', type=int, default=DEFAULT_MIN_COUNT,
                    help=f'minimum minor-allele count for sites entering Zns (default {DEFAULT_MIN_COUNT})')
    ap.add_argument('--seed', type=int, default=None, help='seed for the resampling RNG')
    ap.add_argument('--workers', type=int, default=1, help='replicates processed in parallel (default 1)')
    ap.add_argument('--quiet', action='store_true', help='only log warnings and errors')
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point for msstats-recomb.

    Reads ms output, validates the requested subsample size against the
    header, then writes one tab-separated row of statistics per replicate and
    resampling round. Exits 1 on configuration or input errors.
    """
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.help:
        ap.print_usage(sys.stderr)
        sys.exit(1)
    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    if args.workers > 1:
        # one BLAS thread per worker process
        os.environ['OMP_NUM_THREADS'] = '1'
        os.environ['OPENBLAS_NUM_THREADS'] = '1'
        os.environ['MKL_NUM_THREADS'] = '1'

    config = PipelineConfig(
        subsample_size=args.subsample,
        n_permutations=args.permutations,
        min_count=args.min_count,
        seed=args.seed,
        workers=args.workers,
    )

    try:
        fin = open_text(args.input)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)
    try:
        reader = MsReader(fin)
        # validate before creating any output
        config = config.validate(reader.read_header().nsam)
        fout = open_output(args.out)
        try:
            run_pipeline(reader, fout, config)
        finally:
            if fout is not sys.stdout:
                fout.close()
            else:
                fout.flush()
    except ConfigError as e:
        logger.error(f"error: {e}")
        sys.exit(1)
    except MsFormatError as e:
        logger.error(f"corrupt input: {e}")
        sys.exit(1)
    finally:
        if fin is not sys.stdin:
            fin.close()


if __name__ == '__main__':
    main()
