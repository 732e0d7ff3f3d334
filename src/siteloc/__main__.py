"""Allow ``python -m siteloc``."""

from .cli import main

raise SystemExit(main())
