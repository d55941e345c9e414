# flake8: noqa
from .alevin import get_alevin_paths, read_alevin, read_eds
from .fasta import FASTA, read_genome, reverse_complement, write_fasta
from .features import (
    extract_sequences,
    Feature,
    get_feature_ranges,
    intron_gene_id,
    write_expanded_gtf,
    write_features,
    write_genes,
    write_tx2gene,
)
from .gtf import GTF, parse_gtf, Segment, SegmentCollection
