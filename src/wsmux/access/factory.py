"""Store factory: pick the local or remote store for a host."""

import logging

from ..core.ids import is_local, validate_host
from .base import SessionStore
from .local import LocalSessionStore
from .remote import RemoteSessionStore
from .transport import SshTransport

logger = logging.getLogger(__name__)


def create_store(host: str | None = None, transport: SshTransport | None = None) -> SessionStore:
    """Create the session store for ``host``.

    Args:
        host: ``None`` or ``"local"`` for this machine, otherwise
              ``[user@]hostname``
        transport: SSH transport to reuse (remote hosts only)

    Returns:
        SessionStore instance

    Raises:
        InvalidInputError: If ``host`` is malformed
    """
    if is_local(host):
        logger.debug("[Factory] Using local session store")
        return LocalSessionStore()

    validate_host(host)  # type: ignore[arg-type]
    logger.debug(f"[Factory] Using remote session store on {host}")
    return RemoteSessionStore(host, transport=transport)  # type: ignore[arg-type]
