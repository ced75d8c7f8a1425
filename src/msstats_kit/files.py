import gzip, sys, pathlib
from typing import IO

def open_text(fp: str) -> IO[str]:
    """Open ms output for reading; '-' is stdin, '.gz' files are decompressed."""
    if fp == '-':
        return sys.stdin
    if not pathlib.Path(fp).exists():
        raise RuntimeError(f"Input not found: {fp}")
    return gzip.open(fp, 'rt') if fp.endswith('.gz') else open(fp, 'r')

def open_output(fp: str) -> IO[str]:
    if fp == '-':
        return sys.stdout
    pathlib.Path(fp).parent.mkdir(parents=True, exist_ok=True)
    return gzip.open(fp, 'wt') if fp.endswith('.gz') else open(fp, 'w')
