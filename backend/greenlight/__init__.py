"""
Greenlight - JSON API for managing a movie catalogue.

This package implements a small resource-management backend built on:
- Versioned movie records with optimistic concurrency control
- Users with bcrypt password hashes and activation state
- Opaque bearer tokens stored only as SHA-256 fingerprints
- SQLite as the durable store (one file, per-operation connections)

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌─────────────────┐
    │   Client    │────▶│  FastAPI     │────▶│ Boundary decoder│
    │   (JSON)    │     │  routers     │     │ + Validator     │
    └─────────────┘     └──────┬───────┘     └─────────────────┘
                               │
              ┌────────────────┼──────────────────┐
              ▼                ▼                  ▼
        ┌──────────┐    ┌────────────┐     ┌────────────────┐
        │  Models  │    │  Password  │     │ TaskSupervisor │
        │ (stores) │    │  (bcrypt)  │     │   ──▶ Mailer   │
        └────┬─────┘    └────────────┘     └────────────────┘
             ▼
        ┌──────────┐
        │  SQLite  │
        └──────────┘

Invariants:
    - Every successful update increments a record's version by exactly one
    - No update overwrites a version newer than the one the caller read
    - Plaintext passwords and tokens are never persisted or logged
    - Background work never propagates faults into the request path

How to change safely:
    - Keep the version predicate inside the single UPDATE statement
    - Never return a token plaintext anywhere except from TokenStore.new()
    - Route all fire-and-forget work through TaskSupervisor.run()

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
