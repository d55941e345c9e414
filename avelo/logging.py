import ngs_tools as ngs

logger = ngs.logging.Logger('avelo')
