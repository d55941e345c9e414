"""Linked transcriptomes bind a salmon index, by the hash of its sequences, to
the FASTA and GTF it was built from, so that quantifications made with that
index can be matched back to their annotation. The JSON layout follows the one
used by tximeta.
"""
import json
import os
from typing import Dict, Iterable, List, Optional, Union

from . import constants, utils
from .logging import logger


def get_index_seq_hash(index_dir: str) -> str:
    """Get the SHA256 digest of the sequences in a salmon index.

    Args:
        index_dir: Path to salmon index

    Returns:
        The digest

    Raises:
        AveloException: If the index does not record a sequence hash
    """
    info_path = os.path.join(index_dir, constants.SALMON_INFO_FILENAME)
    with open(info_path, 'r') as f:
        info = json.load(f)
    seq_hash = info.get('SeqHash')
    if not seq_hash:
        raise utils.AveloException(f'{info_path} does not contain a `SeqHash`. Was the index built by salmon>=1.0?')
    return seq_hash


def get_quant_seq_hash(quant_dir: str) -> Optional[str]:
    """Get the sequence hash of the index used for a salmon or alevin run.

    Args:
        quant_dir: salmon or alevin output directory

    Returns:
        The digest, or `None` if it was not recorded
    """
    meta_info_path = os.path.join(quant_dir, constants.SALMON_AUX_DIR, constants.SALMON_META_INFO_FILENAME)
    if not os.path.exists(meta_info_path):
        logger.warning(f'{meta_info_path} does not exist')
        return None
    with open(meta_info_path, 'r') as f:
        return json.load(f).get('index_seq_hash')


def make_linked_txome(
    index_dir: str,
    source: str,
    organism: str,
    release: str,
    genome: str,
    fasta: Union[str, List[str]],
    gtf: str,
    json_path: str,
) -> str:
    """Write a linked transcriptome JSON for a salmon index.

    Args:
        index_dir: Path to salmon index
        source: Source of the annotation, i.e. `GENCODE` or `Ensembl`
        organism: Organism, i.e. `Mus musculus`
        release: Annotation release
        genome: Genome assembly, i.e. `GRCm38`
        fasta: Path(s) to the FASTA(s) used to build the index
        gtf: Path to the GTF describing the indexed sequences
        json_path: Path to output JSON

    Returns:
        Path to JSON
    """
    record = {
        'index': os.path.abspath(index_dir),
        'source': source,
        'organism': organism,
        'release': release,
        'genome': genome,
        'fasta': [os.path.abspath(path) for path in ([fasta] if isinstance(fasta, str) else fasta)],
        'gtf': os.path.abspath(gtf),
        'sha256': get_index_seq_hash(index_dir),
    }
    with open(json_path, 'w') as f:
        json.dump([record], f, indent=4)
    return json_path


def read_linked_txomes(json_path: str) -> List[Dict[str, Union[str, List[str]]]]:
    """Read the records of a linked transcriptome JSON.
    """
    with open(json_path, 'r') as f:
        records = json.load(f)
    return records if isinstance(records, list) else [records]


def find_linked_txome(quant_dir: str, json_paths: Iterable[str]) -> Optional[Dict[str, Union[str, List[str]]]]:
    """Find the linked transcriptome of the index used for a quantification.

    Args:
        quant_dir: salmon or alevin output directory
        json_paths: Linked transcriptome JSONs to search

    Returns:
        The matching record, or `None` if there is no match
    """
    seq_hash = get_quant_seq_hash(quant_dir)
    if seq_hash is None:
        return None
    for json_path in json_paths:
        for record in read_linked_txomes(json_path):
            if record.get('sha256') == seq_hash:
                logger.info(f'Found linked transcriptome for index {record.get("index")} in {json_path}')
                return record
    return None
