"""
Reader for Hudson's ``ms`` text output (and simulators that mimic it).

Layout::

    ms 4 2 -t 5.0           <- command line: program, nsam, nreps, ...
    1234 5678 9012          <- seeds (ignored)

    //
    segsites: 2
    positions: 0.1000 0.5000
    00
    01
    10
    11

    //
    segsites: 0
"""
import logging
from dataclasses import dataclass
from typing import IO, Iterator, List, Optional

from .matrix import HaplotypeMatrix

logger = logging.getLogger(__name__)


class MsFormatError(RuntimeError):
    """Malformed or truncated ms output."""


@dataclass(frozen=True)
class MsHeader:
    nsam: int
    nreps: int
    command: str


def parse_command_line(line: str) -> MsHeader:
    """
    Parse the ms command line into sample size and replicate count.

    Raises:
        MsFormatError: If the line does not carry integer nsam and nreps
    """
    toks = line.split()
    if len(toks) < 3:
        raise MsFormatError(f"ms header needs '<program> <nsam> <nreps>', got: {line.strip()!r}")
    try:
        nsam, nreps = int(toks[1]), int(toks[2])
    except ValueError:
        raise MsFormatError(f"ms header has non-integer nsam/nreps: {line.strip()!r}") from None
    if nsam < 1 or nreps < 0:
        raise MsFormatError(f"ms header has invalid nsam={nsam} nreps={nreps}")
    return MsHeader(nsam=nsam, nreps=nreps, command=line.strip())


class MsReader:
    """
    Streaming reader: one header, then one HaplotypeMatrix per ``//`` block.

    Usage::

        reader = MsReader(fh)
        header = reader.read_header()
        for matrix in reader:
            ...
    """

    def __init__(self, stream: IO[str]):
        self._stream = stream
        self._pushback: Optional[str] = None
        self.header: Optional[MsHeader] = None
        self.replicates_read = 0

    # ----- line handling -----

    def _next_line(self) -> Optional[str]:
        if self._pushback is not None:
            line, self._pushback = self._pushback, None
            return line
        line = self._stream.readline()
        return line if line else None

    def _next_nonblank(self) -> Optional[str]:
        while True:
            line = self._next_line()
            if line is None or line.strip():
                return line

    # ----- public API -----

    def read_header(self) -> MsHeader:
        """
        Read the command line and the seed line.

        Raises:
            MsFormatError: On an empty stream or a malformed command line
        """
        if self.header is not None:
            return self.header
        line = self._next_nonblank()
        if line is None:
            raise MsFormatError("empty input: no ms header found")
        self.header = parse_command_line(line)
        # seeds follow on the next line; anything up to the first '//' is ignored
        logger.debug(f"ms header: {self.header.command}")
        return self.header

    def read_replicate(self) -> Optional[HaplotypeMatrix]:
        """
        Read the next replicate block.

        Returns:
            The replicate's matrix, or None at end of stream

        Raises:
            MsFormatError: If the block is malformed or truncated
        """
        nsam = self.read_header().nsam
        while True:
            line = self._next_line()
            if line is None:
                return None
            if line.startswith('//'):
                break
        rep = self.replicates_read + 1

        line = self._next_nonblank()
        if line is None or not line.startswith('segsites:'):
            raise MsFormatError(f"replicate {rep}: expected 'segsites:' line, got {_show(line)}")
        try:
            segsites = int(line.split(':', 1)[1])
        except ValueError:
            raise MsFormatError(f"replicate {rep}: bad segsites line {line.strip()!r}") from None
        if segsites < 0:
            raise MsFormatError(f"replicate {rep}: negative segsites {segsites}")

        if segsites == 0:
            self.replicates_read += 1
            return HaplotypeMatrix.empty(nsam)

        line = self._next_nonblank()
        if line is None or not line.startswith('positions:'):
            raise MsFormatError(f"replicate {rep}: expected 'positions:' line, got {_show(line)}")
        try:
            positions = [float(x) for x in line.split(':', 1)[1].split()]
        except ValueError:
            raise MsFormatError(f"replicate {rep}: bad positions line") from None
        if len(positions) != segsites:
            raise MsFormatError(f"replicate {rep}: {len(positions)} positions for {segsites} segsites")

        haps = self._read_haplotypes(rep)
        if len(haps) != nsam:
            raise MsFormatError(f"replicate {rep}: found {len(haps)} haplotypes, header declares {nsam}")
        for i, h in enumerate(haps):
            if len(h) != segsites:
                raise MsFormatError(f"replicate {rep}: haplotype {i + 1} has {len(h)} sites, expected {segsites}")
        try:
            matrix = HaplotypeMatrix.from_strings(haps, positions)
        except ValueError as e:
            raise MsFormatError(f"replicate {rep}: {e}") from None
        self.replicates_read += 1
        return matrix

    def _read_haplotypes(self, rep: int) -> List[str]:
        haps = []
        while True:
            line = self._next_line()
            if line is None:
                break
            s = line.strip()
            if not s:
                if haps:
                    break
                continue
            if s.startswith('//'):
                self._pushback = line
                break
            haps.append(s)
        return haps

    def replicates(self) -> Iterator[HaplotypeMatrix]:
        while True:
            matrix = self.read_replicate()
            if matrix is None:
                return
            yield matrix

    def __iter__(self) -> Iterator[HaplotypeMatrix]:
        return self.replicates()


def _show(line: Optional[str]) -> str:
    return 'end of input' if line is None else repr(line.strip())
