STATS_PREFIX = 'run_info'

# ref
EXPANDED_FASTA_FILENAME = 'transcripts_introns.fa'
EXPANDED_GTF_FILENAME = 'transcripts_introns.gtf'
TX2GENE_FILENAME = 'tx2gene.tsv'
FEATURES_FILENAME = 'features.tsv'
GENES_FILENAME = 'genes.tsv'
DECOYS_FILENAME = 'decoys.txt'
GENTROME_FILENAME = 'gentrome.fa'
INDEX_DIR = 'index'
LINKED_TXOME_FILENAME = 'linked_txome.json'

# salmon
SALMON_INFO_FILENAME = 'info.json'
SALMON_AUX_DIR = 'aux_info'
SALMON_META_INFO_FILENAME = 'meta_info.json'

# alevin
ALEVIN_DIR = 'alevin'
ALEVIN_MATRIX_FILENAME = 'quants_mat.gz'
ALEVIN_MTX_FILENAME = 'quants_mat.mtx.gz'
ALEVIN_ROWS_FILENAME = 'quants_mat_rows.txt'
ALEVIN_COLS_FILENAME = 'quants_mat_cols.txt'

# count
SPLIT_ADATA_FILENAME = 'split.h5ad'
ADATA_FILENAME = 'adata.h5ad'

# velocity
VELOCITY_ADATA_FILENAME = 'adata_velocity.h5ad'
STREAM_PLOT_FILENAME = 'velocity_stream.png'
