"""
`python -m regscope` entrypoint.

This is mainly for convenience; the installed console script `regscope` calls
the same `regscope.cli:main`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
