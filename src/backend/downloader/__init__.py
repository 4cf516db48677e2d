"""
Media download orchestration.

Provides:
- Ordered fallback strategies (strategies.py)
- Download sink and transient blob handles (sink.py)
- Individual vs. archive dispatching (dispatcher.py)
"""

from .dispatcher import DispatchReport, DownloadDispatcher, DownloadResult, DownloadStatus
from .sink import BlobStore, DownloadSink, LocalDownloadSink
from .strategies import Strategy, StrategiesExhausted, StrategyFailure, first_success

__all__ = [
    "BlobStore",
    "DispatchReport",
    "DownloadDispatcher",
    "DownloadResult",
    "DownloadSink",
    "DownloadStatus",
    "LocalDownloadSink",
    "Strategy",
    "StrategiesExhausted",
    "StrategyFailure",
    "first_success",
]
