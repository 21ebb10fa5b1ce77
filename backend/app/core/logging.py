from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[inFlow %(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False) -> logging.Logger:
    """
    Un seul handler stderr sur le logger racine "backend".
    Idempotent : appeler deux fois ne duplique pas les lignes.
    """
    root = logging.getLogger("backend")
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    if not any(getattr(h, "_inflow_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._inflow_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    return root
