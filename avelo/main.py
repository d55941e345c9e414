import argparse
import logging
import os
import shutil
import sys
import warnings
from typing import Optional

from . import __version__, config
from .logging import logger
from .technology import TECHNOLOGIES_MAP
from .utils import AveloException, parse_overrides


def print_technologies():
    """Displays a list of supported technologies along with the read structure
    and the alevin flag of each.
    """
    headers = ['name', 'library', 'barcode', 'umi', 'cDNA', 'alevin']
    rows = [headers]

    print('List of supported single-cell technologies\n')
    print('Positions syntax: `input file index, start position, end position`')
    print('When start & end positions are None, refers to the entire file\n')
    for key in sorted(TECHNOLOGIES_MAP):
        t = TECHNOLOGIES_MAP[key]
        chem = t.chemistry
        row = [
            t.name,
            t.library_type,
            ' '.join(str(_def) for _def in chem.cell_barcode_parser) if chem.has_cell_barcode else '',
            ' '.join(str(_def) for _def in chem.umi_parser) if chem.has_umi else '',
            ' '.join(str(_def) for _def in chem.cdna_parser),
            ' '.join(t.arguments),
        ]
        rows.append(row)

    max_lens = []
    for i in range(len(headers)):
        max_lens.append(len(headers[i]))
        for row in rows[1:]:
            max_lens[i] = max(max_lens[i], len(row[i]))

    rows.insert(1, ['-' * l for l in max_lens])  # noqa
    for row in rows:
        for col, l in zip(row, max_lens):
            print(col.ljust(l + 4), end='')
        print()
    sys.exit(1)


def add_salmon_overrides_argument(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--salmon-overrides',
        metavar='ARGUMENTS',
        help='Arguments to pass directly to salmon, as a single quoted string.',
        type=str,
        default=None
    )


def setup_ref_args(parser: argparse.ArgumentParser, parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Helper function to set up a subparser for the `ref` command.

    Args:
        parser: Argparse parser to add the `ref` command to
        parent: Argparse parser parent of the newly added subcommand.
            Used to inherit shared commands/flags

    Returns:
        The newly added parser
    """
    parser_ref = parser.add_parser(
        'ref',
        description='Extract spliced and intron sequences from a reference and build a salmon index',
        help='Extract spliced and intron sequences from a reference and build a salmon index',
        parents=[parent],
    )
    parser_ref._actions[0].help = parser_ref._actions[0].help.capitalize()

    parser_ref.add_argument(
        '-o',
        metavar='OUT',
        help='Path to output directory (default: current directory)',
        type=str,
        default='.',
    )
    parser_ref.add_argument(
        '-i',
        metavar='INDEX',
        help='Path to the directory where the salmon index will be generated (default: OUT/index)',
        type=str,
        default=None,
    )
    parser_ref.add_argument(
        '--flank-length',
        metavar='LENGTH',
        help=(
            'Length added to both sides of each intron. This should be around '
            f'the read length. (default: {config.FLANK_LENGTH})'
        ),
        type=int,
        default=config.FLANK_LENGTH,
    )
    parser_ref.add_argument(
        '--intron-type',
        help=(
            'How introns are defined. `separate` uses the introns of each transcript, '
            '`collapse` uses the regions between the union of all exons of each gene. '
            '(default: separate)'
        ),
        choices=config.INTRON_TYPES,
        default='separate',
    )
    parser_ref.add_argument(
        '--join-overlapping-introns',
        help='Merge introns of the same gene that overlap after flanking.',
        action='store_true'
    )
    parser_ref.add_argument(
        '--no-decoys',
        help='Do not index the genome sequences as decoys.',
        action='store_true',
    )
    parser_ref.add_argument('-k', metavar='K', help='k-mer length (default: 31)', type=int, default=31)
    parser_ref.add_argument(
        '--source', metavar='SOURCE', help='Annotation source, i.e. GENCODE (default: Custom)', default='Custom'
    )
    parser_ref.add_argument('--organism', metavar='ORGANISM', help='Organism, i.e. "Mus musculus"', default='')
    parser_ref.add_argument('--release', metavar='RELEASE', help='Annotation release, i.e. M25', default='')
    parser_ref.add_argument('--genome', metavar='GENOME', help='Genome assembly, i.e. GRCm38', default='')
    parser_ref.add_argument('--overwrite', help='Overwrite existing files.', action='store_true')
    add_salmon_overrides_argument(parser_ref)
    parser_ref.add_argument(
        'fasta',
        help='Genomic FASTA file',
        type=str,
    )
    parser_ref.add_argument(
        'gtf',
        help='Reference GTF file',
        type=str,
    )

    return parser_ref


def setup_quant_args(parser: argparse.ArgumentParser, parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Helper function to set up a subparser for the `quant` command.

    Args:
        parser: Argparse parser to add the `quant` command to
        parent: Argparse parser parent of the newly added subcommand.
            Used to inherit shared commands/flags

    Returns:
        The newly added parser
    """
    parser_quant = parser.add_parser(
        'quant',
        description='Quantify spliced and unspliced RNA per cell with alevin',
        help='Quantify spliced and unspliced RNA per cell with alevin',
        parents=[parent],
    )
    parser_quant._actions[0].help = parser_quant._actions[0].help.capitalize()

    required_quant = parser_quant.add_argument_group('required arguments')
    required_quant.add_argument(
        '-i', metavar='INDEX', help='Path to the directory where the salmon index is located', type=str, required=True
    )
    required_quant.add_argument(
        '-g',
        metavar='TX2GENE',
        help='Path to the feature-to-gene table generated by `avelo ref`',
        type=str,
        required=True
    )
    required_quant.add_argument(
        '-x',
        metavar='TECHNOLOGY',
        help='Single-cell technology used. `avelo --list` to view all supported technologies',
        type=str,
        required=True,
        choices=TECHNOLOGIES_MAP.keys()
    )
    parser_quant.add_argument(
        '-o',
        metavar='OUT',
        help='Path to output directory (default: current directory)',
        type=str,
        default='.',
    )
    parser_quant.add_argument(
        '--expect-cells',
        metavar='CELLS',
        help='Expected number of cells, used for initial cell calling.',
        type=int,
        default=None,
    )
    parser_quant.add_argument(
        '-w',
        metavar='WHITELIST',
        help=('Path to file of filtered cell barcodes. '
              'If not provided, alevin calls cells itself.'),
    )
    parser_quant.add_argument('--overwrite', help='Overwrite existing files.', action='store_true')
    add_salmon_overrides_argument(parser_quant)
    parser_quant.add_argument(
        'fastqs',
        help=(
            'FASTQ files in pairs, where the first of each pair contains barcode and UMI reads '
            'and the second contains biological reads.'
        ),
        nargs='+'
    )

    return parser_quant


def setup_count_args(parser: argparse.ArgumentParser, parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Helper function to set up a subparser for the `count` command.

    Args:
        parser: Argparse parser to add the `count` command to
        parent: Argparse parser parent of the newly added subcommand.
            Used to inherit shared commands/flags

    Returns:
        The newly added parser
    """
    parser_count = parser.add_parser(
        'count',
        description='Split alevin counts into spliced and unspliced matrices, then normalize',
        help='Split alevin counts into spliced and unspliced matrices, then normalize',
        parents=[parent],
    )
    parser_count._actions[0].help = parser_count._actions[0].help.capitalize()

    parser_count.add_argument(
        '-o',
        metavar='OUT',
        help='Path to output directory (default: current directory)',
        type=str,
        default='.',
    )
    parser_count.add_argument(
        '-f',
        metavar='FEATURES',
        help=(
            'Path to the spliced/unspliced correspondence table generated by `avelo ref`. '
            'Not required if `--txome` is provided.'
        ),
        type=str,
        default=None,
    )
    parser_count.add_argument(
        '--genes',
        metavar='GENES',
        help='Path to gene information generated by `avelo ref`, used to add gene names.',
        type=str,
        default=None,
    )
    parser_count.add_argument(
        '--txome',
        metavar='JSON',
        help=(
            'Linked transcriptome JSON generated by `avelo ref`. The reference tables of the '
            'index used for quantification are found automatically. This option can be '
            'specified multiple times.'
        ),
        action='append',
        default=None,
    )
    parser_count.add_argument(
        '--min-shared-counts',
        metavar='COUNTS',
        help=(
            'Minimum number of counts, in both spliced and unspliced matrices, '
            f'for a gene to be kept. (default: {config.MIN_SHARED_COUNTS})'
        ),
        type=int,
        default=config.MIN_SHARED_COUNTS,
    )
    parser_count.add_argument(
        '--n-top-genes',
        metavar='GENES',
        help=f'Number of highly variable genes to keep. (default: {config.N_TOP_GENES})',
        type=int,
        default=config.N_TOP_GENES,
    )
    parser_count.add_argument(
        '--n-pcs',
        metavar='PCS',
        help=f'Number of principal components. (default: {config.N_PCS})',
        type=int,
        default=config.N_PCS,
    )
    parser_count.add_argument(
        '--n-neighbors',
        metavar='NEIGHBORS',
        help=f'Number of nearest neighbors. (default: {config.N_NEIGHBORS})',
        type=int,
        default=config.N_NEIGHBORS,
    )
    parser_count.add_argument('--overwrite', help='Overwrite existing files.', action='store_true')
    parser_count.add_argument(
        'alevin_dir',
        help='alevin output directory generated by `avelo quant`',
        type=str,
    )

    return parser_count


def setup_velocity_args(parser: argparse.ArgumentParser, parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Helper function to set up a subparser for the `velocity` command.

    Args:
        parser: Argparse parser to add the `velocity` command to
        parent: Argparse parser parent of the newly added subcommand.
            Used to inherit shared commands/flags

    Returns:
        The newly added parser
    """
    parser_velocity = parser.add_parser(
        'velocity',
        description='Estimate RNA velocity and render a streamplot',
        help='Estimate RNA velocity and render a streamplot',
        parents=[parent],
    )
    parser_velocity._actions[0].help = parser_velocity._actions[0].help.capitalize()

    parser_velocity.add_argument(
        '-o',
        metavar='OUT',
        help='Path to output directory (default: current directory)',
        type=str,
        default='.',
    )
    parser_velocity.add_argument(
        '--mode',
        help='Velocity model. (default: dynamical)',
        choices=config.VELOCITY_MODES,
        default='dynamical',
    )
    parser_velocity.add_argument(
        '--n-pcs',
        metavar='PCS',
        help=f'Number of principal components used to compute moments. (default: {config.N_PCS})',
        type=int,
        default=config.N_PCS,
    )
    parser_velocity.add_argument(
        '--n-neighbors',
        metavar='NEIGHBORS',
        help=f'Number of neighbors used to compute moments. (default: {config.N_NEIGHBORS})',
        type=int,
        default=config.N_NEIGHBORS,
    )
    parser_velocity.add_argument(
        '--basis',
        metavar='BASIS',
        help='Embedding to plot velocities on. (default: umap)',
        type=str,
        default='umap',
    )
    parser_velocity.add_argument(
        '--color',
        metavar='KEY',
        help='Observation key or gene to color cells by.',
        type=str,
        default=None,
    )
    parser_velocity.add_argument(
        'adata',
        help='Normalized h5ad generated by `avelo count`',
        type=str,
    )

    return parser_velocity


def parse_ref(parser: argparse.ArgumentParser, args: argparse.Namespace, temp_dir: Optional[str] = None):
    """Parser for the `ref` command.

    Args:
        parser: The parser
        args: Command-line arguments dictionary, as parsed by argparse
        temp_dir: Temporary directory
    """
    if args.flank_length < 0:
        parser.error('`--flank-length` must be non-negative')
    if args.k < 1 or args.k % 2 == 0:
        parser.error('`-k` must be a positive odd integer')
    for path in (args.fasta, args.gtf):
        if not os.path.exists(path):
            parser.error(f'{path} does not exist')
    if args.i and os.path.exists(args.i) and not args.overwrite:
        logger.warning(f'salmon index directory {args.i} already exists. It will be reused if it is complete.')

    try:
        overrides = parse_overrides(args.salmon_overrides)
    except AveloException as e:
        parser.error(str(e))

    from .ref import ref
    ref(
        args.fasta,
        args.gtf,
        args.o,
        index_dir=args.i,
        flank_length=args.flank_length,
        intron_type=args.intron_type,
        join_overlapping_introns=args.join_overlapping_introns,
        decoys=not args.no_decoys,
        k=args.k,
        source=args.source,
        organism=args.organism,
        release=args.release,
        genome=args.genome,
        n_threads=args.t,
        temp_dir=temp_dir,
        overrides=overrides,
        overwrite=args.overwrite,
    )


def parse_quant(parser: argparse.ArgumentParser, args: argparse.Namespace, temp_dir: Optional[str] = None):
    """Parser for the `quant` command.

    Args:
        parser: The parser
        args: Command-line arguments dictionary, as parsed by argparse
        temp_dir: Temporary directory
    """
    if len(args.fastqs) % 2 != 0:
        parser.error(f'FASTQs must be provided in pairs, but {len(args.fastqs)} were provided')
    for fastq in args.fastqs:
        if not os.path.exists(fastq):
            parser.error(f'{fastq} does not exist')
    if not os.path.isdir(args.i):
        parser.error(f'salmon index directory {args.i} does not exist')
    if not os.path.exists(args.g):
        parser.error(f'{args.g} does not exist')
    if args.expect_cells is not None and args.expect_cells < 1:
        parser.error('`--expect-cells` must be a positive integer')
    if args.w and not os.path.exists(args.w):
        parser.error(f'{args.w} does not exist')

    try:
        overrides = parse_overrides(args.salmon_overrides)
    except AveloException as e:
        parser.error(str(e))

    from .quant import quant
    quant(
        args.fastqs,
        args.i,
        args.g,
        args.o,
        TECHNOLOGIES_MAP[args.x],
        expect_cells=args.expect_cells,
        whitelist_path=args.w,
        n_threads=args.t,
        overrides=overrides,
        overwrite=args.overwrite,
    )


def parse_count(parser: argparse.ArgumentParser, args: argparse.Namespace, temp_dir: Optional[str] = None):
    """Parser for the `count` command.

    Args:
        parser: The parser
        args: Command-line arguments dictionary, as parsed by argparse
        temp_dir: Temporary directory
    """
    if not args.f and not args.txome:
        parser.error('One of `-f` or `--txome` must be provided')
    for path in [args.f, args.genes] + (args.txome or []):
        if path and not os.path.exists(path):
            parser.error(f'{path} does not exist')
    if not os.path.isdir(args.alevin_dir):
        parser.error(f'alevin output directory {args.alevin_dir} does not exist')
    if args.min_shared_counts < 0:
        parser.error('`--min-shared-counts` must be non-negative')
    if args.n_top_genes < 1 or args.n_pcs < 1 or args.n_neighbors < 1:
        parser.error('`--n-top-genes`, `--n-pcs` and `--n-neighbors` must be positive integers')

    from .count import count
    count(
        args.alevin_dir,
        args.o,
        features_path=args.f,
        genes_path=args.genes,
        linked_txome_paths=args.txome,
        min_shared_counts=args.min_shared_counts,
        n_top_genes=args.n_top_genes,
        n_pcs=args.n_pcs,
        n_neighbors=args.n_neighbors,
        overwrite=args.overwrite,
    )


def parse_velocity(parser: argparse.ArgumentParser, args: argparse.Namespace, temp_dir: Optional[str] = None):
    """Parser for the `velocity` command.

    Args:
        parser: The parser
        args: Command-line arguments dictionary, as parsed by argparse
        temp_dir: Temporary directory
    """
    if not os.path.exists(args.adata):
        parser.error(f'{args.adata} does not exist')
    if args.n_pcs < 1 or args.n_neighbors < 1:
        parser.error('`--n-pcs` and `--n-neighbors` must be positive integers')

    from .velocity import velocity
    velocity(
        args.adata,
        args.o,
        mode=args.mode,
        n_pcs=args.n_pcs,
        n_neighbors=args.n_neighbors,
        basis=args.basis,
        color=args.color,
        n_threads=args.t,
    )


COMMAND_TO_FUNCTION = {
    'ref': parse_ref,
    'quant': parse_quant,
    'count': parse_count,
    'velocity': parse_velocity,
}


@logger.namespaced('main')
def main():
    parser = argparse.ArgumentParser(
        description=f'{__version__} RNA velocity from single-cell FASTQs with alevin and scVelo'
    )
    parser._actions[0].help = parser._actions[0].help.capitalize()
    parser.add_argument('--list', help='Display list of supported single-cell technologies', action='store_true')
    subparsers = parser.add_subparsers(
        dest='command',
        metavar='<CMD>',
    )

    # Add common options to this parent parser
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument('--tmp', metavar='TMP', help='Override default temporary directory', type=str, default='tmp')
    parent.add_argument('--keep-tmp', help='Do not delete the tmp directory', action='store_true')
    parent.add_argument('--verbose', help='Print debugging information', action='store_true')
    parent.add_argument('-t', metavar='THREADS', help='Number of threads to use (default: 8)', type=int, default=8)

    # Command parsers
    parser_ref = setup_ref_args(subparsers, parent)
    parser_quant = setup_quant_args(subparsers, parent)
    parser_count = setup_count_args(subparsers, parent)
    parser_velocity = setup_velocity_args(subparsers, parent)
    command_to_parser = {
        'ref': parser_ref,
        'quant': parser_quant,
        'count': parser_count,
        'velocity': parser_velocity,
    }
    if '--list' in sys.argv:
        print_technologies()

    # Show help when no arguments are given
    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)
    if len(sys.argv) == 2:
        if sys.argv[1] in command_to_parser:
            command_to_parser[sys.argv[1]].print_help(sys.stderr)
        else:
            parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args()

    logger.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    logger.debug('Printing verbose output')
    logger.debug(f'Input args: {args}')
    if args.t < 1:
        parser.error('`-t` must be a positive integer')
    logger.debug(f'Creating {args.tmp} directory')
    if os.path.exists(args.tmp):
        parser.error(
            f'Temporary directory {args.tmp} already exists. '
            'Is another process running? Please specify a different temporary '
            'directory with the `--tmp` option, or remove the one that already '
            'exists.'
        )
    os.makedirs(args.tmp)
    os.environ['NUMEXPR_MAX_THREADS'] = str(args.t)
    failed = False
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            COMMAND_TO_FUNCTION[args.command](parser, args, temp_dir=args.tmp)
        logger.info('Done')
    except Exception:
        logger.exception('An exception occurred')
        failed = True
    finally:
        if not args.keep_tmp:
            logger.debug(f'Removing {args.tmp} directory')
            shutil.rmtree(args.tmp, ignore_errors=True)
    if failed:
        sys.exit(1)
