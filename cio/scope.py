"""cio caller scope — build an environment mapping from a calling frame."""

from __future__ import annotations

import sys


def capture_scope(stacklevel: int = 1) -> dict[str, object]:
    """Globals of the frame stacklevel levels above this call, overlaid with its locals.

    stacklevel=1 is the direct caller of capture_scope.
    """
    frame = sys._getframe(stacklevel)
    try:
        scope = dict(frame.f_globals)
        scope.update(frame.f_locals)
        return scope
    finally:
        del frame
