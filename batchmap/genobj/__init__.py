from .outcrossobj import OutcrossObject
from .seqobj import SequenceObject, make_seq, UNDEFINED_PHASE, UNDEFINED_RF

__all__ = ['OutcrossObject', 'SequenceObject', 'make_seq', 'UNDEFINED_PHASE', 'UNDEFINED_RF']
