from collections import namedtuple
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from typing_extensions import Literal

from .. import config
from ..logging import logger
from .fasta import reverse_complement
from .gtf import Segment, SegmentCollection

# A feature is either a spliced transcript (all of its exons) or a single
# flanked intron. `segments` are sorted in genomic order.
Feature = namedtuple('Feature', ['feature_id', 'gene_id', 'chromosome', 'strand', 'segments', 'kind'])


def intron_gene_id(gene_id: str) -> str:
    """The identifier of the unspliced counterpart of a gene.
    """
    return f'{gene_id}{config.INTRON_SUFFIX}'


def intron_feature_ids(gene_id: str, n: int) -> List[str]:
    """Identifiers of the `n` introns of a gene. The first intron has no
    numeric suffix, i.e. `GENE-I, GENE-I1, GENE-I2, ...`.
    """
    base = intron_gene_id(gene_id)
    return [base if i == 0 else f'{base}{i}' for i in range(n)]


def get_gene_introns(
    gene_info: dict,
    transcript_infos: Dict[str, dict],
    intron_type: Literal['separate', 'collapse'] = 'separate',
    flank_length: int = config.FLANK_LENGTH,
    join_overlapping_introns: bool = False,
    chromosome_length: Optional[int] = None,
) -> List[Segment]:
    """Compute the flanked intronic segments of a single gene.

    Args:
        gene_info: Gene information, as returned by :func:`parse_gtf`
        transcript_infos: All transcript information, as returned by :func:`parse_gtf`
        intron_type: `separate` computes introns for each transcript separately,
            `collapse` computes introns as the gaps between the union of all exons
            of the gene
        flank_length: Length added to both sides of each intron
        join_overlapping_introns: Merge introns that overlap after flanking. Always
            done when `intron_type` is `collapse`.
        chromosome_length: Length of the chromosome, to clip flanked introns

    Returns:
        Sorted list of intronic segments
    """
    transcripts = [transcript_infos[transcript_id] for transcript_id in gene_info['transcripts']]
    if intron_type == 'separate':
        introns = [intron for transcript in transcripts for intron in transcript['introns']]
    elif intron_type == 'collapse':
        introns = SegmentCollection.from_collections(*(transcript['exons'] for transcript in transcripts)).gaps()
        join_overlapping_introns = True
    else:
        raise ValueError(f'Unknown intron type `{intron_type}`. Must be one of {config.INTRON_TYPES}')

    flanked = set(intron.flank(flank_length, maximum=chromosome_length) for intron in introns)
    flanked = sorted(segment for segment in flanked if segment is not None)
    if join_overlapping_introns:
        return SegmentCollection(flanked).segments
    return flanked


def get_feature_ranges(
    gene_infos: Dict[str, dict],
    transcript_infos: Dict[str, dict],
    intron_type: Literal['separate', 'collapse'] = 'separate',
    flank_length: int = config.FLANK_LENGTH,
    join_overlapping_introns: bool = False,
    chromosome_lengths: Optional[Dict[str, int]] = None,
) -> List[Feature]:
    """Compute spliced (transcript) and unspliced (intron) features from
    parsed GTF information.

    Every transcript with at least one exon becomes a spliced feature that
    maps to its gene. Every intron becomes an unspliced feature that maps to
    the unspliced counterpart of its gene (see :func:`intron_gene_id`).

    Args:
        gene_infos: Gene information, as returned by :func:`parse_gtf`
        transcript_infos: Transcript information, as returned by :func:`parse_gtf`
        intron_type: How introns are defined. See :func:`get_gene_introns`.
        flank_length: Length added to both sides of each intron
        join_overlapping_introns: Merge introns that overlap after flanking
        chromosome_lengths: Dictionary of chromosome name to length, used to
            clip flanked introns. Transcripts with exons that end past the end
            of their chromosome are skipped, along with their introns.

    Returns:
        List of features, spliced features first, each sorted by identifier
    """
    chromosome_lengths = chromosome_lengths or {}

    out_of_range = set()
    for transcript_id, attributes in transcript_infos.items():
        length = chromosome_lengths.get(attributes['chr'])
        if length is not None and attributes['exons'] and attributes['exons'].end > length:
            logger.warning(
                f'Transcript `{transcript_id}` ends at {attributes["exons"].end}, past the end of chromosome '
                f'`{attributes["chr"]}` ({length}). This transcript will be skipped.'
            )
            out_of_range.add(transcript_id)

    spliced = []
    for transcript_id in sorted(transcript_infos):
        attributes = transcript_infos[transcript_id]
        if not attributes['exons'] or transcript_id in out_of_range:
            continue
        spliced.append(
            Feature(
                transcript_id, attributes['gene_id'], attributes['chr'], attributes['strand'],
                list(attributes['exons']), 'spliced'
            )
        )

    unspliced = []
    for gene_id in sorted(gene_infos):
        gene_info = gene_infos[gene_id]
        if out_of_range:
            gene_info = dict(gene_info, transcripts=[t for t in gene_info['transcripts'] if t not in out_of_range])
        introns = get_gene_introns(
            gene_info,
            transcript_infos,
            intron_type=intron_type,
            flank_length=flank_length,
            join_overlapping_introns=join_overlapping_introns,
            chromosome_length=chromosome_lengths.get(gene_info['chr']),
        )
        for feature_id, intron in zip(intron_feature_ids(gene_id, len(introns)), introns):
            unspliced.append(
                Feature(feature_id, intron_gene_id(gene_id), gene_info['chr'], gene_info['strand'], [intron], 'intron')
            )

    logger.debug(f'Computed {len(spliced)} spliced and {len(unspliced)} intron features')
    return spliced + unspliced


def extract_sequences(features: Iterable[Feature], genome: Dict[str, str]) -> Iterator[Tuple[str, str]]:
    """Generator that yields the `(feature ID, sequence)` of each feature.
    Segments are concatenated in genomic order, and the result is
    reverse-complemented for features on the reverse strand. Features on
    chromosomes missing from the genome are skipped.

    Args:
        features: Features, as returned by :func:`get_feature_ranges`
        genome: Dictionary of chromosome name to sequence

    Yields:
        Tuples of (feature ID, sequence)
    """
    missing = set()
    for feature in features:
        chromosome = genome.get(feature.chromosome)
        if chromosome is None:
            if feature.chromosome not in missing:
                logger.warning(
                    f'Chromosome `{feature.chromosome}` does not exist in the genome FASTA. '
                    'All features on this chromosome will be skipped.'
                )
                missing.add(feature.chromosome)
            continue

        sequence = ''.join(chromosome[segment.start:segment.end] for segment in feature.segments)
        if feature.strand == '-':
            sequence = reverse_complement(sequence)
        yield feature.feature_id, sequence


def write_tx2gene(features: Iterable[Feature], tx2gene_path: str) -> str:
    """Write the feature-to-gene table used by alevin (no header).
    """
    with open(tx2gene_path, 'w') as f:
        for feature in features:
            f.write(f'{feature.feature_id}\t{feature.gene_id}\n')
    return tx2gene_path


def write_features(features: Iterable[Feature], features_path: str) -> str:
    """Write the spliced/unspliced correspondence table, with one row for
    every gene that has both spliced and unspliced features.
    """
    spliced_genes = set()
    unspliced_genes = set()
    for feature in features:
        if feature.kind == 'spliced':
            spliced_genes.add(feature.gene_id)
        else:
            unspliced_genes.add(feature.gene_id)

    with open(features_path, 'w') as f:
        f.write('spliced\tunspliced\n')
        for gene_id in sorted(spliced_genes):
            if intron_gene_id(gene_id) in unspliced_genes:
                f.write(f'{gene_id}\t{intron_gene_id(gene_id)}\n')
    return features_path


def write_genes(gene_infos: Dict[str, dict], genes_path: str) -> str:
    """Write gene information as a TSV.
    """
    with open(genes_path, 'w') as f:
        f.write('gene_id\tgene_name\tchromosome\tstrand\n')
        for gene_id in sorted(gene_infos):
            gene_info = gene_infos[gene_id]
            f.write(f'{gene_id}\t{gene_info["gene_name"] or ""}\t{gene_info["chr"]}\t{gene_info["strand"]}\n')
    return genes_path


def write_expanded_gtf(features: Iterable[Feature], gtf_path: str, source: str = 'avelo') -> str:
    """Write features as a GTF, with a `transcript` entry spanning each feature
    and one `exon` entry per segment.
    """
    with open(gtf_path, 'w') as f:
        for feature in features:
            attributes = (
                f'gene_id "{feature.gene_id}"; transcript_id "{feature.feature_id}"; '
                f'feature_type "{feature.kind}";'
            )
            rows = [('transcript', feature.segments[0].start, feature.segments[-1].end)]
            rows += [('exon', segment.start, segment.end) for segment in feature.segments]
            for feature_type, start, end in rows:
                f.write(
                    f'{feature.chromosome}\t{source}\t{feature_type}\t{start + 1}\t{end}\t.\t{feature.strand}\t.\t'
                    f'{attributes}\n'
                )
    return gtf_path
