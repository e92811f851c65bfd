"""Runtime orchestration (admission, fan-out, batch state).

This layer is responsible for:
- admitting a bounded number of batches at once
- fanning each batch out to concurrent fetchers under a per-batch cap
- failing fast and unwinding every in-flight fetch on error or cancellation

It should remain independent from the HTTP layer (`batchfetch/api`), so both CLI and API
can reuse the same execution logic.
"""
