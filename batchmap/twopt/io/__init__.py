from .base import TwoPointBaseReader
from .read import TwoPointReader, read_twopt

__all__ = ['TwoPointBaseReader', 'TwoPointReader', 'read_twopt']
