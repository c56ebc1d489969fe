"""Client side of the polling protocol: HTTP client and status poller."""

from __future__ import annotations

from .api import AnalysisClient
from .poller import GENERIC_POLL_ERROR, AnalysisPoller, PollHandle

__all__ = ["GENERIC_POLL_ERROR", "AnalysisClient", "AnalysisPoller", "PollHandle"]
