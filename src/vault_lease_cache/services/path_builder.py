"""Request path builder for Vault dynamic secret endpoints."""

from enum import Enum

from ..config import ProviderConfig
from ..errors import InvalidArgument


class RequestAction(str, Enum):
    GET = "get"
    REVOKE = "revoke"


def build_path(
    action: str,
    config: ProviderConfig | None = None,
    lease_id: str | None = None,
) -> str:
    """Map an action to its Vault request path.

    Path components are not escaped; ``ProviderConfig`` validation limits
    them to URL-safe characters.

    Args:
        action: ``"get"`` or ``"revoke"``
        config: Mount and secret path, required for ``get``
        lease_id: Lease to revoke, required for ``revoke``

    Raises:
        InvalidArgument: Unknown action or missing argument
    """
    try:
        action = RequestAction(action)
    except ValueError:
        raise InvalidArgument(f"Unknown request action: {action!r}") from None

    if action is RequestAction.GET:
        if config is None:
            raise InvalidArgument("A provider config is required to build a 'get' path")
        return f"/{config.secret_engine_mount}creds/{config.secret_path}"

    if not lease_id:
        raise InvalidArgument("A lease id is required to build a 'revoke' path")
    return f"/sys/leases/revoke/{lease_id}"
