"""Dependency Injection Container Module.

Usage:
------
    # At startup (once, inside the running event loop)
    from tollgate.core.config import settings
    from tollgate.core.container import initialize_container
    await initialize_container(settings)

    # Anywhere in the host application after initialization
    from tollgate.core.container import get_container
    decision = await get_container().gate.can_proceed(context)

    # At shutdown
    await shutdown_container()

Module structure:
-----------------
    container/
    ├── __init__.py      # This file - exports public API
    ├── container.py     # Container dataclass (serves)
    └── factory.py       # create_container() (builds)
"""

from typing import TYPE_CHECKING, Optional

from tollgate.core.container.container import Container
from tollgate.core.container.factory import create_container

if TYPE_CHECKING:
    from tollgate.core.config import Settings
    from tollgate.db.session import SessionFactory

__all__ = [
    "Container",
    "create_container",
    "container",
    "get_container",
    "initialize_container",
    "reset_container",
    "shutdown_container",
]


# ---------------------------------------------------------------------------
# Global container instance
# ---------------------------------------------------------------------------

container: Container | None = None
"""Global container instance.

Initialized via `initialize_container()` at application startup. Domain code
never imports it; services receive their collaborators explicitly.
"""


async def initialize_container(
    settings: "Settings", session_factory: Optional["SessionFactory"] = None
) -> Container:
    """Build the global container and start its background work.

    Raises:
        RuntimeError: If called more than once.
    """
    global container

    if container is not None:
        raise RuntimeError(
            "Container already initialized. "
            "initialize_container() should only be called once at startup."
        )

    built = create_container(settings, session_factory=session_factory)
    await built.start()
    container = built
    return built


def get_container() -> Container:
    """Return the global container.

    Raises:
        RuntimeError: If ``initialize_container()`` has not run.
    """
    if container is None:
        raise RuntimeError("Container not initialized. Call initialize_container() first.")
    return container


async def shutdown_container() -> None:
    """Stop the limiter sweep, dispose the engine and clear the global."""
    global container

    if container is None:
        return
    current, container = container, None
    await current.close()


def reset_container() -> None:
    """Reset the global container to None. For testing only.

    WARNING: Does not stop background work; prefer ``shutdown_container()``.
    """
    global container
    container = None
