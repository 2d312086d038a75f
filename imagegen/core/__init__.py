"""Shared contracts package.

Composition:
    - `errors`: closed `ErrorKind` enumeration, typed exceptions and the
      upstream error classifier.
    - `results`: Result Envelope returned by every generation operation.

Determinism and side effects:
    Package import is deterministic and side-effect free.
"""
