"""
Jobs infrastructure for newsletter side effects.

This package provides an in-process job system with:
- Registry-based pluggable handlers addressed by job name
- An asyncio worker pool with per-job deadlines
- Typed payloads validated inside each handler
- Optional bounded retries with backoff
"""
