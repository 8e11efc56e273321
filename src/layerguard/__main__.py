"""Allow ``python -m layerguard``."""

from layerguard.cli import main

main()
