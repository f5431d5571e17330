"""Allow ``python -m timevariants``."""

from timevariants.cli import main

main()
