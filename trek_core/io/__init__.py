"""
I/O Module: Trace files for offline replay.
"""

from .trace_reader import (
    TraceFormatError,
    TraceRecord,
    iter_trace,
    load_trace,
    parse_record,
)

__all__ = [
    'TraceFormatError',
    'TraceRecord',
    'iter_trace',
    'load_trace',
    'parse_record',
]
