"""HTTP API: app factory, job store, enqueue path and background runner."""
