import os
import platform

PACKAGE_PATH = os.path.dirname(__file__)
PLATFORM = platform.system().lower()
BINS_DIR = os.path.join(PACKAGE_PATH, 'bins')
SALMON_ENV_VARIABLE = 'AVELO_SALMON'
RECOMMENDED_MEMORY = 16 * (1024**3)  # 16 GB

# Suffix appended to gene IDs to name the unspliced (intronic) counterpart
INTRON_SUFFIX = '-I'
INTRON_TYPES = ['separate', 'collapse']
FLANK_LENGTH = 90

SALMON_INDEX_ARGUMENTS = {
    '-k': 31,
}

ALEVIN_ARGUMENTS = {
    '--dumpFeatures': None,
    '--dumpMtx': None,
}

# Binary alevin matrices store one float64 per non-zero entry
ALEVIN_EDS_DTYPE = '<f8'

MIN_SHARED_COUNTS = 20
N_TOP_GENES = 2000
N_PCS = 30
N_NEIGHBORS = 30
VELOCITY_MODES = ['dynamical', 'stochastic', 'deterministic']
