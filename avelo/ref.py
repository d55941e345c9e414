import os
import shutil
import tempfile
from typing import Any, Dict, Optional

from tqdm import tqdm
from typing_extensions import Literal

from . import config, constants, preprocessing, utils
from .logging import logger
from .stats import Stats
from .txome import make_linked_txome


def get_expanded_paths(out_dir: str) -> Dict[str, str]:
    """Paths of the expanded reference files in the given directory.
    """
    return {
        'fasta': os.path.join(out_dir, constants.EXPANDED_FASTA_FILENAME),
        'gtf': os.path.join(out_dir, constants.EXPANDED_GTF_FILENAME),
        'tx2gene': os.path.join(out_dir, constants.TX2GENE_FILENAME),
        'features': os.path.join(out_dir, constants.FEATURES_FILENAME),
        'genes': os.path.join(out_dir, constants.GENES_FILENAME),
    }


def expand_reference(
    fasta_path: str,
    gtf_path: str,
    out_dir: str,
    flank_length: int = config.FLANK_LENGTH,
    intron_type: Literal['separate', 'collapse'] = 'separate',
    join_overlapping_introns: bool = False,
) -> Dict[str, str]:
    """Extract spliced transcript and flanked intron sequences from a genome,
    and write them along with the tables that link them to genes.

    Args:
        fasta_path: Path to genome FASTA
        gtf_path: Path to GTF
        out_dir: Output directory
        flank_length: Length added to both sides of each intron. This should
            be around the read length, so that reads partially overlapping an
            intron are assigned to it.
        intron_type: `separate` or `collapse`. See :func:`preprocessing.get_gene_introns`.
        join_overlapping_introns: Merge overlapping introns of a gene

    Returns:
        Dictionary of output paths
    """
    paths = get_expanded_paths(out_dir)

    logger.info(f'Parsing gene and transcript information from {gtf_path}')
    gene_infos, transcript_infos = preprocessing.parse_gtf(gtf_path)

    logger.info(f'Reading genome from {fasta_path}')
    genome = preprocessing.read_genome(fasta_path)

    logger.info(
        f'Computing spliced and intron ranges with intron type `{intron_type}` and flank length {flank_length}'
    )
    features = preprocessing.get_feature_ranges(
        gene_infos,
        transcript_infos,
        intron_type=intron_type,
        flank_length=flank_length,
        join_overlapping_introns=join_overlapping_introns,
        chromosome_lengths={name: len(sequence) for name, sequence in genome.items()},
    )
    missing = sorted(set(feature.chromosome for feature in features) - set(genome))
    if missing:
        logger.warning(
            f'The following chromosomes in the GTF do not exist in the genome FASTA: {", ".join(missing)}. '
            'Features on these chromosomes will be ignored.'
        )
        features = [feature for feature in features if feature.chromosome in genome]

    logger.info(f'Writing {len(features)} feature sequences to {paths["fasta"]}')
    preprocessing.write_fasta(
        tqdm(preprocessing.extract_sequences(features, genome), total=len(features), ascii=True), paths['fasta']
    )
    preprocessing.write_expanded_gtf(features, paths['gtf'])
    preprocessing.write_tx2gene(features, paths['tx2gene'])
    preprocessing.write_features(features, paths['features'])
    preprocessing.write_genes(gene_infos, paths['genes'])
    return paths


def write_decoys(fasta_path: str, decoys_path: str) -> str:
    """Write the names of all sequences in a FASTA, one per line.
    """
    with open(decoys_path, 'w') as f:
        for name in preprocessing.FASTA(fasta_path).headers():
            f.write(f'{name}\n')
    return decoys_path


def make_gentrome(fasta_path: str, genome_fasta_path: str, gentrome_path: str) -> str:
    """Concatenate the feature FASTA and genome FASTA. The genome sequences must
    come last for salmon to accept them as decoys.
    """
    with open(gentrome_path, 'w') as out:
        for path in (fasta_path, genome_fasta_path):
            with utils.open_as_text(path, 'r') as f:
                shutil.copyfileobj(f, out)
    return gentrome_path


def salmon_index(
    fasta_path: str,
    index_dir: str,
    decoys_path: Optional[str] = None,
    k: int = 31,
    n_threads: int = 8,
    temp_dir: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """Build a salmon index.

    Args:
        fasta_path: Path to FASTA of sequences to index
        index_dir: Path to directory where the index will be built
        decoys_path: Path to textfile containing names of decoy sequences
        k: k-mer length
        n_threads: Number of threads to use
        temp_dir: Temporary directory
        overrides: salmon command-line argument overrides

    Returns:
        Dictionary containing the path to the index
    """
    arguments = utils.combine_arguments(config.SALMON_INDEX_ARGUMENTS, {
        '-t': fasta_path,
        '-i': index_dir,
        '-k': k,
        '-p': n_threads,
    })
    if decoys_path:
        arguments['-d'] = decoys_path
    if temp_dir:
        arguments['--tmpdir'] = os.path.join(
            temp_dir, f'{tempfile.gettempprefix()}{next(tempfile._get_candidate_names())}'
        )
    arguments.update(overrides or {})

    command = [utils.get_salmon_binary_path(), 'index'] + utils.arguments_to_list(arguments)
    logger.debug(f'Generating salmon index to {index_dir}')
    utils.run_executable(command)
    return {'index': index_dir}


@logger.namespaced('ref')
def ref(
    fasta_path: str,
    gtf_path: str,
    out_dir: str,
    index_dir: Optional[str] = None,
    flank_length: int = config.FLANK_LENGTH,
    intron_type: Literal['separate', 'collapse'] = 'separate',
    join_overlapping_introns: bool = False,
    decoys: bool = True,
    k: int = 31,
    source: str = 'Custom',
    organism: str = '',
    release: str = '',
    genome: str = '',
    n_threads: int = 8,
    temp_dir: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    overwrite: bool = False,
) -> Dict[str, str]:
    """Main interface for the `ref` command.

    Args:
        fasta_path: Path to genome FASTA
        gtf_path: Path to GTF
        out_dir: Output directory
        index_dir: Path to salmon index. Defaults to a directory inside `out_dir`.
        flank_length: Intron flank length
        intron_type: How introns are defined
        join_overlapping_introns: Merge overlapping introns of a gene
        decoys: Whether to index the genome as decoy sequences
        k: k-mer length
        source: Annotation source, for the linked transcriptome
        organism: Organism, for the linked transcriptome
        release: Annotation release, for the linked transcriptome
        genome: Genome assembly, for the linked transcriptome
        n_threads: Number of threads to use
        temp_dir: Temporary directory
        overrides: salmon command-line argument overrides
        overwrite: Overwrite existing files

    Returns:
        Dictionary of output paths
    """
    stats = Stats()
    stats.start()
    os.makedirs(out_dir, exist_ok=True)
    index_dir = index_dir or os.path.join(out_dir, constants.INDEX_DIR)

    expanded_paths = get_expanded_paths(out_dir)
    skip = utils.all_exists(*expanded_paths.values()) and not overwrite
    with stats.step('expand', skipped=skip, **expanded_paths):
        if not skip:
            expanded_paths = expand_reference(
                fasta_path,
                gtf_path,
                out_dir,
                flank_length=flank_length,
                intron_type=intron_type,
                join_overlapping_introns=join_overlapping_introns
            )
        else:
            logger.warning('Skipped reference expansion because files already exist. Use `--overwrite` to redo.')
    result = dict(expanded_paths)

    index_fasta_path = expanded_paths['fasta']
    decoys_path = None
    if decoys:
        decoys_path = os.path.join(out_dir, constants.DECOYS_FILENAME)
        gentrome_path = os.path.join(out_dir, constants.GENTROME_FILENAME)
        skip = utils.all_exists(decoys_path, gentrome_path) and not overwrite
        with stats.step('gentrome', skipped=skip, decoys=decoys_path, gentrome=gentrome_path):
            if not skip:
                logger.info(f'Writing genome sequence names to {decoys_path}')
                write_decoys(fasta_path, decoys_path)
                logger.info(f'Combining feature and genome sequences into {gentrome_path}')
                make_gentrome(expanded_paths['fasta'], fasta_path, gentrome_path)
        index_fasta_path = gentrome_path
        result.update({'decoys': decoys_path, 'gentrome': gentrome_path})

    info_path = os.path.join(index_dir, constants.SALMON_INFO_FILENAME)
    skip = utils.all_exists(info_path) and not overwrite
    with stats.step('index', skipped=skip, index=index_dir):
        if not skip:
            utils.check_memory()
            logger.info(f'Using salmon {utils.get_salmon_version()} found at {utils.get_salmon_binary_path()}')
            logger.info(f'Indexing {index_fasta_path} with salmon to {index_dir}')
            salmon_index(
                index_fasta_path,
                index_dir,
                decoys_path=decoys_path,
                k=k,
                n_threads=n_threads,
                temp_dir=temp_dir,
                overrides=overrides
            )
        else:
            logger.warning(f'Skipped indexing because {info_path} already exists. Use `--overwrite` to redo.')
    result['index'] = index_dir

    linked_txome_path = os.path.join(out_dir, constants.LINKED_TXOME_FILENAME)
    logger.info(f'Linking index {index_dir} to {expanded_paths["gtf"]} in {linked_txome_path}')
    make_linked_txome(
        index_dir, source, organism, release, genome, expanded_paths['fasta'], expanded_paths['gtf'],
        linked_txome_path
    )
    result['linked_txome'] = linked_txome_path

    stats.end()
    stats.save(out_dir=out_dir)
    return result
