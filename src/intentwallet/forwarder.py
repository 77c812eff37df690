"""Generic call forwarding from the wallet account."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .abi import NULL_ADDRESS, normalize_address
from .errors import InvalidTargetError

if TYPE_CHECKING:
    from .chain import Contract

logger = logging.getLogger(__name__)


class CallForwarder:
    """Invokes an arbitrary target with an opaque payload on behalf of ``account``.

    Only the success flag is reported. Return data and revert reasons are
    dropped.
    """

    def __init__(self, account: "Contract"):
        self._account = account

    def invoke(self, target: str, value: int, payload: bytes) -> bool:
        try:
            normalized = normalize_address(target)
        except ValueError as exc:
            raise InvalidTargetError(str(exc)) from exc
        if normalized == NULL_ADDRESS:
            raise InvalidTargetError("Call target cannot be the null address")

        chain = self._account.chain
        if chain is None:
            raise RuntimeError("Forwarding account is not deployed")
        result = chain.call(self._account.address, normalized, bytes(payload), value=value)
        if not result.success:
            logger.debug("Forwarded call to %s failed", normalized)
        return result.success
