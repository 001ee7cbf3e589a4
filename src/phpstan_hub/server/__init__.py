"""Analysis orchestration server for PhpStanHub.

Requires the server dependencies (starlette, uvicorn, watchfiles), which
``pip install phpstan-hub`` pulls in.
"""

from __future__ import annotations


def _check_deps() -> None:
    """Raise a clear error if server dependencies are missing."""
    missing = []
    try:
        import starlette  # noqa: F401
    except ImportError:
        missing.append("starlette")
    try:
        import uvicorn  # noqa: F401
    except ImportError:
        missing.append("uvicorn")
    try:
        import watchfiles  # noqa: F401
    except ImportError:
        missing.append("watchfiles")

    if missing:
        raise ImportError(
            f"Missing server dependencies: {', '.join(missing)}. "
            "Install with: pip install phpstan-hub"
        )
