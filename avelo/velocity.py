import os
from typing import Optional

import anndata
import matplotlib.pyplot as plt
import scvelo as scv
from typing_extensions import Literal

from . import config, constants, utils
from .logging import logger
from .stats import Stats


def estimate_velocity(
    adata: anndata.AnnData,
    mode: Literal['dynamical', 'stochastic', 'deterministic'] = 'dynamical',
    n_pcs: int = config.N_PCS,
    n_neighbors: int = config.N_NEIGHBORS,
    n_jobs: int = 8,
) -> anndata.AnnData:
    """Estimate RNA velocity with scVelo, in place.

    Args:
        adata: Normalized Anndata with `spliced` and `unspliced` layers
        mode: scVelo velocity model
        n_pcs: Number of principal components used to compute moments
        n_neighbors: Number of neighbors used to compute moments
        n_jobs: Number of parallel jobs

    Returns:
        The same Anndata, with velocities in the `velocity` layer and
        the velocity graph in `uns`
    """
    n_pcs = min(n_pcs, adata.obsm['X_pca'].shape[1]) if 'X_pca' in adata.obsm else n_pcs
    logger.info(f'Computing moments with {n_pcs} principal components and {n_neighbors} neighbors')
    scv.pp.moments(adata, n_pcs=n_pcs, n_neighbors=n_neighbors)

    if mode == 'dynamical':
        logger.info('Recovering full splicing kinetics')
        scv.tl.recover_dynamics(adata, n_jobs=n_jobs)

    logger.info(f'Estimating velocities with the {mode} model')
    scv.tl.velocity(adata, mode=mode)
    scv.tl.velocity_graph(adata, n_jobs=n_jobs)
    return adata


def plot_velocity_stream(
    adata: anndata.AnnData,
    plot_path: str,
    basis: str = 'umap',
    color: Optional[str] = None,
    dpi: int = 300,
) -> str:
    """Project velocities onto an embedding and save the streamplot.

    Args:
        adata: Anndata with estimated velocities
        plot_path: Path to output image. The format is inferred from the extension.
        basis: Embedding to plot on, i.e. `umap` for `adata.obsm['X_umap']`
        color: Observation key or gene to color cells by
        dpi: Resolution of the image

    Returns:
        Path to the image
    """
    fig, ax = plt.subplots(figsize=(8, 8))
    try:
        scv.pl.velocity_embedding_stream(adata, basis=basis, color=color, ax=ax, show=False)
        fig.savefig(plot_path, dpi=dpi, bbox_inches='tight')
    finally:
        plt.close(fig)
    return plot_path


@logger.namespaced('velocity')
def velocity(
    adata_path: str,
    out_dir: str,
    mode: Literal['dynamical', 'stochastic', 'deterministic'] = 'dynamical',
    n_pcs: int = config.N_PCS,
    n_neighbors: int = config.N_NEIGHBORS,
    basis: str = 'umap',
    color: Optional[str] = None,
    n_threads: int = 8,
):
    """Main interface for the `velocity` command.

    Args:
        adata_path: Path to normalized Anndata written by the `count` command
        out_dir: Path to output directory
        mode: scVelo velocity model
        n_pcs: Number of principal components used to compute moments
        n_neighbors: Number of neighbors used to compute moments
        basis: Embedding to plot velocities on
        color: Observation key or gene to color cells by
        n_threads: Number of threads to use

    Returns:
        Dictionary of output paths
    """
    stats = Stats()
    stats.start()
    os.makedirs(out_dir, exist_ok=True)

    logger.info(f'Reading Anndata from {adata_path}')
    adata = anndata.read_h5ad(adata_path)
    if 'spliced' not in adata.layers or 'unspliced' not in adata.layers:
        raise utils.AveloException(
            f'{adata_path} must contain `spliced` and `unspliced` layers. Was it made with `count`?'
        )
    if f'X_{basis}' not in adata.obsm:
        raise utils.AveloException(f'{adata_path} does not contain a `{basis}` embedding.')
    if color is not None and color not in adata.obs and color not in adata.var_names:
        raise utils.AveloException(f'`{color}` is neither an observation key nor a gene in {adata_path}.')

    velocity_path = os.path.join(out_dir, constants.VELOCITY_ADATA_FILENAME)
    with stats.step('velocity', mode=mode, adata=velocity_path):
        estimate_velocity(adata, mode=mode, n_pcs=n_pcs, n_neighbors=n_neighbors, n_jobs=n_threads)
        logger.info(f'Writing Anndata with velocities to {velocity_path}')
        adata.write(velocity_path, compression='gzip')

    plot_path = os.path.join(out_dir, constants.STREAM_PLOT_FILENAME)
    with stats.step('plot', plot=plot_path):
        logger.info(f'Rendering velocity streamplot on `{basis}` to {plot_path}')
        plot_velocity_stream(adata, plot_path, basis=basis, color=color)

    stats.end()
    stats.save(out_dir=out_dir)
    return {'adata': velocity_path, 'plot': plot_path}
