from typing import Dict, Iterable, Iterator, Tuple

import ngs_tools as ngs

from .. import utils
from ..logging import logger

VALID_BASES = frozenset('ACGTN')


class FASTA:
    """Utility class to read FASTA files one entry at a time.

    Args:
        fasta_path: Path to FASTA file, which may be gzipped
    """

    def __init__(self, fasta_path: str):
        self.fasta_path = fasta_path

    @staticmethod
    def parse_header(line: str) -> str:
        """Parse the sequence name from a FASTA header line, which is everything
        between the `>` and the first whitespace.
        """
        return line[1:].strip().split(maxsplit=1)[0]

    def headers(self) -> Iterator[str]:
        """Generator that yields the sequence name of each entry.
        """
        with utils.open_as_text(self.fasta_path, 'r') as f:
            for line in f:
                if line.startswith('>'):
                    yield FASTA.parse_header(line)

    def entries(self) -> Iterator[Tuple[str, str]]:
        """Generator that yields one `(name, sequence)` entry at a time.
        """
        name = None
        sequence = []
        with utils.open_as_text(self.fasta_path, 'r') as f:
            for line in f:
                if line.startswith('>'):
                    if name is not None:
                        yield name, ''.join(sequence)
                    name = FASTA.parse_header(line)
                    sequence = []
                elif not line.isspace():
                    sequence.append(line.strip())
        if name is not None:
            yield name, ''.join(sequence)


def reverse_complement(sequence: str) -> str:
    """Reverse complement of a nucleotide sequence, in uppercase. Any character
    that is not a valid base is replaced with `N`.
    """
    sequence = sequence.upper()
    if not VALID_BASES.issuperset(sequence):
        sequence = ''.join(base if base in VALID_BASES else 'N' for base in sequence)
    return ngs.sequence.complement_sequence(sequence, reverse=True)


def read_genome(fasta_path: str) -> Dict[str, str]:
    """Read an entire genome FASTA into memory.

    Args:
        fasta_path: Path to genome FASTA

    Returns:
        Dictionary of sequence name to uppercase sequence
    """
    genome = {}
    for name, sequence in FASTA(fasta_path).entries():
        if name in genome:
            logger.warning(f'Found duplicate sequence `{name}` in {fasta_path}. Only the first will be used.')
            continue
        genome[name] = sequence.upper()
    logger.debug(f'Read {len(genome)} sequences from {fasta_path}')
    return genome


def write_fasta(entries: Iterable[Tuple[str, str]], fasta_path: str, line_width: int = 60) -> str:
    """Write `(name, sequence)` entries to a FASTA file.

    Args:
        entries: Iterable of (name, sequence) tuples
        fasta_path: Path to output FASTA
        line_width: Maximum number of bases per line

    Returns:
        Path to FASTA
    """
    with open(fasta_path, 'w') as f:
        for name, sequence in entries:
            f.write(f'>{name}\n')
            for i in range(0, len(sequence), line_width):
                f.write(f'{sequence[i:i + line_width]}\n')
    return fasta_path
