"""Allow `python -m pagelingo`."""

from pagelingo.cli import main

raise SystemExit(main())
