"""ClassLens: classroom relationship insights backed by background AI jobs.

The package is organised around the analysis job lifecycle:

- ``classlens.api``       HTTP surface (enqueue, status) and the job store.
- ``classlens.worker``    Long-lived consumer of the persisted job queue.
- ``classlens.analysis``  Per-kind payload rules, prompts and runners.
- ``classlens.client``    Async HTTP client and the status poller.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.3.0"
