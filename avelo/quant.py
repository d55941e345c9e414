import os
from typing import Any, Dict, List, Optional

from . import config, constants, preprocessing, utils
from .logging import logger
from .stats import Stats
from .technology import Technology


def salmon_alevin(
    fastqs: List[str],
    index_dir: str,
    tx2gene_path: str,
    out_dir: str,
    technology: Technology,
    expect_cells: Optional[int] = None,
    whitelist_path: Optional[str] = None,
    n_threads: int = 8,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """Quantify FASTQs with alevin.

    Args:
        fastqs: List of paths to FASTQs. Order matters: FASTQs are given in pairs,
            where the first of each pair contains the barcode and UMI reads
            and the second contains the cDNA reads.
        index_dir: Path to salmon index
        tx2gene_path: Path to feature-to-gene table
        out_dir: Path to output directory
        technology: A `Technology` object defined in `technology.py`
        expect_cells: Expected number of cells, used for initial cell calling
        whitelist_path: Path to textfile of filtered cell barcodes. When provided,
            alevin skips its own cell calling.
        n_threads: Number of threads to use
        overrides: salmon command-line argument overrides

    Returns:
        Dictionary containing output files
    """
    logger.info('Quantifying the following FASTQs with alevin')
    for fastq in fastqs:
        logger.info((' ' * 8) + fastq)

    arguments = {
        '-l': technology.library_type,
        '-i': index_dir,
        '-1': fastqs[0::2],
        '-2': fastqs[1::2],
        '-o': out_dir,
        '-p': n_threads,
        '--tgMap': tx2gene_path,
    }
    arguments = utils.combine_arguments(arguments, technology.arguments)
    arguments = utils.combine_arguments(arguments, config.ALEVIN_ARGUMENTS)
    if expect_cells:
        arguments['--expectCells'] = expect_cells
    if whitelist_path:
        arguments['--whitelist'] = whitelist_path
    arguments.update(overrides or {})

    command = [utils.get_salmon_binary_path(), 'alevin'] + utils.arguments_to_list(arguments)
    logger.info('Starting quantification')
    utils.run_executable(command)

    return get_quant_paths(out_dir)


def get_quant_paths(out_dir: str) -> Dict[str, str]:
    """Paths to the files used downstream from an alevin output directory.
    """
    alevin_paths = preprocessing.get_alevin_paths(out_dir)
    return {
        'barcodes': alevin_paths['barcodes'],
        'features': alevin_paths['features'],
        'matrix': alevin_paths['mtx'],
        'meta_info': os.path.join(out_dir, constants.SALMON_AUX_DIR, constants.SALMON_META_INFO_FILENAME),
    }


@logger.namespaced('quant')
def quant(
    fastqs: List[str],
    index_dir: str,
    tx2gene_path: str,
    out_dir: str,
    technology: Technology,
    expect_cells: Optional[int] = None,
    whitelist_path: Optional[str] = None,
    n_threads: int = 8,
    overrides: Optional[Dict[str, Any]] = None,
    overwrite: bool = False,
) -> Dict[str, str]:
    """Main interface for the `quant` command.

    Args:
        fastqs: List of paths to FASTQs, in barcode read, cDNA read pairs
        index_dir: Path to salmon index
        tx2gene_path: Path to feature-to-gene table
        out_dir: Path to output directory
        technology: Single-cell technology
        expect_cells: Expected number of cells
        whitelist_path: Path to textfile of filtered cell barcodes
        n_threads: Number of threads to use
        overrides: salmon command-line argument overrides
        overwrite: Overwrite existing files

    Returns:
        Dictionary containing output files
    """
    if len(fastqs) % 2 != 0:
        raise utils.AveloException(f'FASTQs must be provided in pairs, but {len(fastqs)} were provided')

    stats = Stats()
    stats.start()
    os.makedirs(out_dir, exist_ok=True)
    utils.check_memory()

    result = get_quant_paths(out_dir)
    skip = utils.all_exists(*result.values()) and not overwrite
    with stats.step('alevin', skipped=skip, **result):
        if not skip:
            logger.info(f'Using salmon {utils.get_salmon_version()} found at {utils.get_salmon_binary_path()}')
            result = salmon_alevin(
                fastqs,
                index_dir,
                tx2gene_path,
                out_dir,
                technology,
                expect_cells=expect_cells,
                whitelist_path=whitelist_path,
                n_threads=n_threads,
                overrides=overrides,
            )
        else:
            logger.warning('Quantification files already exist. Provide `--overwrite` to overwrite.')

    stats.end()
    stats.save(out_dir=out_dir)
    return result
