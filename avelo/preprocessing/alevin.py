import gzip
import os
from typing import Dict

import anndata
import numpy as np
import pandas as pd
from scipy import io, sparse
from tqdm import tqdm

from .. import config, constants, utils
from ..logging import logger


def get_alevin_paths(out_dir: str) -> Dict[str, str]:
    """Paths to the files alevin writes to its output directory.

    Args:
        out_dir: Alevin output directory (the `-o` argument to `salmon alevin`)

    Returns:
        Dictionary of paths
    """
    alevin_dir = os.path.join(out_dir, constants.ALEVIN_DIR)
    return {
        'matrix': os.path.join(alevin_dir, constants.ALEVIN_MATRIX_FILENAME),
        'mtx': os.path.join(alevin_dir, constants.ALEVIN_MTX_FILENAME),
        'barcodes': os.path.join(alevin_dir, constants.ALEVIN_ROWS_FILENAME),
        'features': os.path.join(alevin_dir, constants.ALEVIN_COLS_FILENAME),
    }


def read_eds(matrix_path: str, n_cells: int, n_features: int) -> sparse.csr_matrix:
    """Read alevin's binary sparse count matrix.

    The matrix is gzipped, and contains one record per cell. Each record is a
    bit-flag vector of `ceil(n_features / 8)` bytes, most significant bit first,
    indicating which features are non-zero, followed by the values of the
    non-zero features.

    Args:
        matrix_path: Path to `quants_mat.gz`
        n_cells: Number of cells (rows)
        n_features: Number of features (columns)

    Returns:
        Cells x features sparse matrix
    """
    dtype = np.dtype(config.ALEVIN_EDS_DTYPE)
    n_flag_bytes = int(np.ceil(n_features / 8))
    indptr = [0]
    indices = []
    data = []
    with gzip.open(matrix_path, 'rb') as f:
        for i in tqdm(range(n_cells), ascii=True, desc='Reading cells'):
            flags = f.read(n_flag_bytes)
            if len(flags) != n_flag_bytes:
                raise utils.AveloException(
                    f'{matrix_path} ended after {i} cells, but {n_cells} cells were expected.'
                )
            columns = np.flatnonzero(np.unpackbits(np.frombuffer(flags, dtype=np.uint8))[:n_features])
            values = np.frombuffer(f.read(len(columns) * dtype.itemsize), dtype=dtype)
            if len(values) != len(columns):
                raise utils.AveloException(f'{matrix_path} is truncated at cell {i}.')
            indices.append(columns)
            data.append(values)
            indptr.append(indptr[-1] + len(columns))

    return sparse.csr_matrix(
        (
            np.concatenate(data) if data else np.array([], dtype=dtype),
            np.concatenate(indices) if indices else np.array([], dtype=int),
            np.array(indptr),
        ),
        shape=(n_cells, n_features),
        dtype=np.float32,
    )


def read_alevin(out_dir: str) -> anndata.AnnData:
    """Read alevin quantification results into an Anndata of raw counts.

    The matrix-market matrix (written with `--dumpMtx`) is preferred over the
    binary matrix when both exist.

    Args:
        out_dir: Alevin output directory

    Returns:
        Anndata with cell barcodes as observations and features as variables
    """
    paths = get_alevin_paths(out_dir)
    barcodes = utils.read_table_column(paths['barcodes'])
    features = utils.read_table_column(paths['features'])

    if os.path.exists(paths['mtx']):
        logger.debug(f'Reading matrix-market counts from {paths["mtx"]}')
        matrix = sparse.csr_matrix(io.mmread(paths['mtx']), dtype=np.float32)
    elif os.path.exists(paths['matrix']):
        logger.debug(f'Reading binary counts from {paths["matrix"]}')
        matrix = read_eds(paths['matrix'], len(barcodes), len(features))
    else:
        raise utils.AveloException(
            f'Neither {paths["mtx"]} nor {paths["matrix"]} exists. Did alevin finish successfully?'
        )

    if matrix.shape != (len(barcodes), len(features)):
        raise utils.AveloException(
            f'Count matrix has shape {matrix.shape}, but {len(barcodes)} barcodes and '
            f'{len(features)} features were expected.'
        )
    logger.info(f'Read counts of {len(features)} features in {len(barcodes)} cells')
    return anndata.AnnData(
        X=matrix,
        obs=pd.DataFrame(index=pd.Series(barcodes, name='barcode')),
        var=pd.DataFrame(index=pd.Series(features, name='feature_id')),
    )
