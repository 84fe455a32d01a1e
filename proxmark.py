#!/usr/bin/env python3
"""Convenience wrapper so the suite can be started as ``./proxmark.py``.

The actual implementation is in the proxmark package.
"""
from proxmark.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
