"""
Core utilities shared across the accounts package.

- configuration helpers (env vars, storage mode, backend parameters)
- password hashing and reset codes
- login throttling
- logging setup for scripts
"""
