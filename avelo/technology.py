from collections import namedtuple

import ngs_tools as ngs

Technology = namedtuple('Technology', ['name', 'chemistry', 'library_type', 'arguments'])

# alevin expects barcode/UMI reads as `-1` and cDNA reads as `-2`, which is
# the native read order of these chemistries.
TECHNOLOGIES = [
    Technology('dropseq', ngs.chemistry.get_chemistry('dropseq'), 'ISR', {'--dropseq': None}),
    Technology('10xv2', ngs.chemistry.get_chemistry('10xv2'), 'ISR', {'--chromium': None}),
    Technology('10xv3', ngs.chemistry.get_chemistry('10xv3'), 'ISR', {'--chromiumV3': None}),
]
TECHNOLOGIES_MAP = {t.name: t for t in TECHNOLOGIES}
