#!/usr/bin/env python3
import argparse
import logging

import pandas as pd
import numpy as np

from .pipeline import COLUMNS

# Configure logging
logger = logging.getLogger(__name__)


def summarize_stats(in_fp: str, out_fp: str, permutations: int = 1) -> pd.DataFrame:
    """
    Reduce a msstats-recomb table to one row per replicate.

    Rows are grouped in consecutive blocks of ``permutations`` (the order the
    table is written in). Undefined values (``nan``/``NAN``) are ignored by the
    means and standard deviations; ``<col>_n`` counts the defined rounds.

    Args:
        in_fp: Table written by msstats-recomb
        out_fp: Output TSV path
        permutations: Resampling rounds per replicate used for the table

    Returns:
        The per-replicate summary DataFrame

    Raises:
        RuntimeError: If columns are missing or the row count does not divide into replicates
    """
    if permutations < 1:
        raise RuntimeError(f"permutations must be at least 1, got {permutations}")
    df = pd.read_csv(in_fp, sep='\t', na_values=['nan', 'NAN'], keep_default_na=False)
    missing = [c for c in COLUMNS if c not in df.columns]
    if missing:
        raise RuntimeError(f"{in_fp} is missing columns: {', '.join(missing)}")
    if len(df) % permutations:
        raise RuntimeError(f"{len(df)} rows in {in_fp} is not a multiple of {permutations} permutations")

    stats = df[list(COLUMNS)].astype(float).replace([np.inf, -np.inf], np.nan)
    stats['replicate'] = np.arange(len(stats)) // permutations + 1
    grouped = stats.groupby('replicate', sort=True)
    means = grouped.mean().add_suffix('_mean')
    sds = grouped.std(ddof=1).add_suffix('_sd')
    counts = grouped.count().add_suffix('_n')
    out = pd.concat([means, sds, counts], axis=1)
    # interleave mean/sd/n per statistic
    out = out[[f"{c}_{s}" for c in COLUMNS for s in ('mean', 'sd', 'n')]].reset_index()
    out.to_csv(out_fp, sep='\t', index=False, na_rep='nan')
    logger.info(f"Summarized {len(df)} rows into {len(out)} replicates: {out_fp}")
    return out


def main() -> None:
    """
    Command line interface for summarize_stats.
    """
    ap = argparse.ArgumentParser(
        description="Per-replicate means and standard deviations of a msstats-recomb table"
    )
    ap.add_argument("-i", "--input", required=True, help="msstats-recomb output TSV")
    ap.add_argument("-o", "--out", required=True, help="Output TSV path")
    ap.add_argument("-p", "--permutations", type=int, default=1,
                    help="resampling rounds per replicate used for the table (default 1)")
    args = ap.parse_args()

    # Configure logging for standalone usage
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    summarize_stats(in_fp=args.input, out_fp=args.out, permutations=args.permutations)


if __name__ == "__main__":
    main()
