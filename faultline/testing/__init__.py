"""
Faultline Testing - test doubles for the dispatch pipeline.
"""

from .faults import CapturedFault, FakeHost, RecordingHandler

__all__ = [
    "CapturedFault",
    "FakeHost",
    "RecordingHandler",
]
