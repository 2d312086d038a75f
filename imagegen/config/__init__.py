"""Configuration package.

Module split:
    - `settings`: environment-driven paths, endpoint and fixed enumerations.
    - `credential_store`: persisted per-user credential record.
"""
