"""
msstats-kit: recombination and diversity summaries for ms coalescent simulations.

This package provides tools for:
- Streaming ms output into per-replicate haplotype matrices
- Resampling individuals and dropping sites made invariant by the subsample
- Minimum-recombination bounds (min_d, Myers-Griffiths, Hudson-Kaplan Rm)
- Diversity statistics (theta W, pi, haplotypes, Wall's B/Q, Hudson's C)
- Zns, the mean pairwise r^2 over site pairs

Main entry point: msstats-recomb CLI command
"""

__version__ = "0.1.0"
