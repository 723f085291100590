"""Entry point for ``python -m treepat``."""

from treepat.main import main

if __name__ == "__main__":
    raise SystemExit(main())
