"""Filesystem storage package.

Scope:
    Writes generated image payloads to the output directory and applies the
    recency-based retention policy.

Non-goals:
    - No metadata sidecar files.
    - No image transcoding; bytes are stored as returned upstream.
"""
