"""HTTP API layer (FastAPI).

This module exposes a small, versioned `/api/v1` surface:
- submit a JSON array of URLs and get back their statuses (all-or-nothing)
- liveness, version, and admission-gate counters

The API is intentionally thin: core behavior lives in `batchfetch/runtime` and `batchfetch/tools`.
"""
