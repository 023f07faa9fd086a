"""Allow ``python -m rerun_failed``."""

from .cli import main

if __name__ == "__main__":
    main()
