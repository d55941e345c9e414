import os
from typing import List, Optional, Tuple

import anndata
import pandas as pd
import scanpy as sc
import scvelo as scv
from scipy import sparse

from . import config, constants, preprocessing, utils
from .logging import logger
from .stats import Stats
from .txome import find_linked_txome


def read_features(features_path: str) -> pd.DataFrame:
    """Read the spliced/unspliced correspondence table.

    Args:
        features_path: Path to TSV with `spliced` and `unspliced` columns

    Returns:
        Dataframe with `spliced` and `unspliced` columns
    """
    df = pd.read_csv(features_path, sep='\t', dtype=str)
    missing = {'spliced', 'unspliced'} - set(df.columns)
    if missing:
        raise utils.AveloException(f'{features_path} is missing the following columns: {", ".join(missing)}')
    return df[['spliced', 'unspliced']].dropna()


def read_genes(genes_path: str) -> pd.DataFrame:
    """Read gene information written by the `ref` command, indexed by gene ID.
    """
    return pd.read_csv(genes_path, sep='\t', dtype=str, keep_default_na=False).set_index('gene_id')


def split_spliced_unspliced(adata: anndata.AnnData, df_features: pd.DataFrame) -> anndata.AnnData:
    """Split a count matrix over spliced and unspliced features into two
    same-shaped matrices, one column per gene.

    Args:
        adata: Anndata of raw counts with feature identifiers as variables
        df_features: Spliced/unspliced correspondence table, as returned by
            :func:`read_features`

    Returns:
        New Anndata with the spliced identifiers as variables, and `spliced`
        and `unspliced` layers. `X` is a copy of the spliced counts.

    Raises:
        AveloException: If no spliced/unspliced pair exists in the matrix
    """
    var_indices = {feature: i for i, feature in enumerate(adata.var_names)}
    present = df_features['spliced'].isin(var_indices) & df_features['unspliced'].isin(var_indices)
    if not present.any():
        raise utils.AveloException(
            'None of the spliced/unspliced pairs exist in the count matrix. '
            'Was the same reference used for quantification?'
        )
    if not present.all():
        logger.warning(
            f'{(~present).sum()} spliced/unspliced pairs do not exist in the count matrix and will be ignored.'
        )
    df_features = df_features[present]

    X = sparse.csc_matrix(adata.X)
    spliced = X[:, [var_indices[feature] for feature in df_features['spliced']]].tocsr()
    unspliced = X[:, [var_indices[feature] for feature in df_features['unspliced']]].tocsr()
    logger.info(
        f'Split counts into {spliced.sum():.0f} spliced and {unspliced.sum():.0f} unspliced counts '
        f'of {spliced.shape[1]} genes'
    )
    return anndata.AnnData(
        X=spliced.copy(),
        obs=adata.obs.copy(),
        var=pd.DataFrame(index=pd.Series(df_features['spliced'].values, name='gene_id')),
        layers={
            'spliced': spliced,
            'unspliced': unspliced
        },
    )


def add_gene_names(adata: anndata.AnnData, df_genes: pd.DataFrame):
    """Add a `gene_name` column to `adata.var`, in place. Genes without a name
    keep their identifier.
    """
    names = df_genes['gene_name'].reindex(adata.var_names)
    names = names.where(names.notna() & (names != ''), adata.var_names.to_series())
    adata.var['gene_name'] = pd.Categorical(names.values)


def normalize_and_reduce(
    adata: anndata.AnnData,
    min_shared_counts: int = config.MIN_SHARED_COUNTS,
    n_top_genes: int = config.N_TOP_GENES,
    n_pcs: int = config.N_PCS,
    n_neighbors: int = config.N_NEIGHBORS,
) -> anndata.AnnData:
    """Filter genes, normalize counts and embed cells, in place.

    Args:
        adata: Anndata with `spliced` and `unspliced` layers
        min_shared_counts: Minimum number of counts, in both spliced and unspliced
            layers, for a gene to be kept
        n_top_genes: Number of highly variable genes to keep
        n_pcs: Number of principal components
        n_neighbors: Number of neighbors in the nearest-neighbor graph

    Returns:
        The same Anndata, with PCA and UMAP embeddings
    """
    logger.info(f'Filtering genes with fewer than {min_shared_counts} shared counts and normalizing')
    scv.pp.filter_and_normalize(adata, min_shared_counts=min_shared_counts, n_top_genes=n_top_genes)

    n_comps = min(n_pcs, adata.n_obs - 1, adata.n_vars - 1)
    if n_comps < 1:
        raise utils.AveloException(
            f'Only {adata.n_obs} cells and {adata.n_vars} genes remain after filtering. '
            'Consider lowering `--min-shared-counts`.'
        )
    if n_comps < n_pcs:
        logger.warning(f'Using {n_comps} principal components instead of {n_pcs} because the data is too small')

    logger.info(f'Computing {n_comps} principal components, nearest neighbors and UMAP embedding')
    sc.tl.pca(adata, n_comps=n_comps)
    sc.pp.neighbors(adata, n_neighbors=n_neighbors, n_pcs=n_comps)
    sc.tl.umap(adata)
    return adata


def resolve_reference_tables(
    alevin_dir: str,
    features_path: Optional[str] = None,
    genes_path: Optional[str] = None,
    linked_txome_paths: Optional[List[str]] = None,
) -> Tuple[str, Optional[str]]:
    """Find the spliced/unspliced correspondence table and gene information
    for a quantification. Paths that are not given are looked up beside the
    GTF of the linked transcriptome of the index used for quantification.

    Args:
        alevin_dir: Alevin output directory
        features_path: Path to spliced/unspliced correspondence table
        genes_path: Path to gene information
        linked_txome_paths: Linked transcriptome JSONs

    Returns:
        (features path, genes path). The genes path may be `None`.

    Raises:
        AveloException: If the correspondence table can not be found
    """
    if features_path is None and linked_txome_paths:
        record = find_linked_txome(alevin_dir, linked_txome_paths)
        if record is not None:
            ref_dir = os.path.dirname(record['gtf'])
            features_path = os.path.join(ref_dir, constants.FEATURES_FILENAME)
            if genes_path is None and os.path.exists(os.path.join(ref_dir, constants.GENES_FILENAME)):
                genes_path = os.path.join(ref_dir, constants.GENES_FILENAME)

    if features_path is None:
        raise utils.AveloException(
            'Failed to find the spliced/unspliced correspondence table. '
            'Provide it with `-f`, or provide the linked transcriptome JSON with `--txome`.'
        )
    return features_path, genes_path


@logger.namespaced('count')
def count(
    alevin_dir: str,
    out_dir: str,
    features_path: Optional[str] = None,
    genes_path: Optional[str] = None,
    linked_txome_paths: Optional[List[str]] = None,
    min_shared_counts: int = config.MIN_SHARED_COUNTS,
    n_top_genes: int = config.N_TOP_GENES,
    n_pcs: int = config.N_PCS,
    n_neighbors: int = config.N_NEIGHBORS,
    overwrite: bool = False,
):
    """Main interface for the `count` command.

    Args:
        alevin_dir: Alevin output directory
        out_dir: Path to output directory
        features_path: Path to spliced/unspliced correspondence table
        genes_path: Path to gene information, used to add gene names
        linked_txome_paths: Linked transcriptome JSONs, used to find the
            tables above when they are not provided
        min_shared_counts: Minimum number of shared counts for a gene to be kept
        n_top_genes: Number of highly variable genes to keep
        n_pcs: Number of principal components
        n_neighbors: Number of nearest neighbors
        overwrite: Overwrite existing files
    """
    stats = Stats()
    stats.start()
    os.makedirs(out_dir, exist_ok=True)

    split_path = os.path.join(out_dir, constants.SPLIT_ADATA_FILENAME)
    skip = utils.all_exists(split_path) and not overwrite
    with stats.step('split', skipped=skip, adata=split_path):
        if not skip:
            features_path, genes_path = resolve_reference_tables(
                alevin_dir, features_path=features_path, genes_path=genes_path, linked_txome_paths=linked_txome_paths
            )
            logger.info(f'Reading alevin counts from {alevin_dir}')
            adata = preprocessing.read_alevin(alevin_dir)

            logger.info(f'Splitting spliced and unspliced counts with {features_path}')
            adata = split_spliced_unspliced(adata, read_features(features_path))
            if genes_path:
                logger.info(f'Adding gene names from {genes_path}')
                add_gene_names(adata, read_genes(genes_path))

            logger.info(f'Writing spliced and unspliced counts to {split_path}')
            adata.write(split_path, compression='gzip')
        else:
            logger.warning(f'Skipped splitting because {split_path} already exists. Use `--overwrite` to redo.')
            adata = anndata.read_h5ad(split_path)

    adata_path = os.path.join(out_dir, constants.ADATA_FILENAME)
    with stats.step('normalize', adata=adata_path):
        adata = normalize_and_reduce(
            adata,
            min_shared_counts=min_shared_counts,
            n_top_genes=n_top_genes,
            n_pcs=n_pcs,
            n_neighbors=n_neighbors,
        )
        logger.info(f'Writing normalized Anndata to {adata_path}')
        adata.write(adata_path, compression='gzip')

    stats.end()
    stats.save(out_dir=out_dir)
    return {'split': split_path, 'adata': adata_path}
