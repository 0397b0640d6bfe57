from .table import TwoPointEntry, TwoPointTable, pair_index
from .io import TwoPointReader, read_twopt

__all__ = ['TwoPointEntry', 'TwoPointTable', 'pair_index', 'TwoPointReader', 'read_twopt']
