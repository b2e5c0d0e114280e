"""Process resource limit helpers.

Dumps keep many sockets and temporary files open at once, so the soft
open-files limit is raised to the hard limit before a run.
"""

from __future__ import annotations

import resource

from core.errors import DumpConfigError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def raise_open_files_limit() -> int:
    """Raise the soft RLIMIT_NOFILE to the hard limit.

    Returns:
        The soft limit now in effect.

    Raises:
        DumpConfigError: If the limit cannot be read or updated.
    """
    try:
        soft_limit, hard_limit = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError) as error:
        raise DumpConfigError(f"Failed to read the open files limit: {error}.") from error
    if soft_limit == hard_limit:
        return soft_limit
    try:
        resource.setrlimit(resource.RLIMIT_NOFILE, (hard_limit, hard_limit))
    except (OSError, ValueError) as error:
        raise DumpConfigError(
            f"Failed to raise the open files limit from {soft_limit} to {hard_limit}: {error}."
        ) from error
    _LOGGER.debug("open_files_limit_raised", previous=soft_limit, current=hard_limit)
    return hard_limit
