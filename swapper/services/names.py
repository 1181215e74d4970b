import logging
from typing import Dict, Optional

from ..adapters.base import SwapperSession
from ..domain.tokens import format_address, is_address

logger = logging.getLogger(__name__)


def token_display_name(session: SwapperSession, token: Optional[str]) -> str:
    """ERC20 name(), or the short address when the token does not answer."""
    if not token or not is_address(token):
        return ""
    try:
        return session.token_name(token)
    except Exception as e:
        logger.info("name() failed for %s: %s", token, e)
        return format_address(token)


class NameCache:
    """Per-session memo of token names; names never change on-chain."""

    def __init__(self, session: SwapperSession):
        self.session = session
        self._names: Dict[str, str] = {}

    def get(self, token: Optional[str]) -> str:
        if not token:
            return ""
        key = token.lower()
        if key not in self._names:
            self._names[key] = token_display_name(self.session, token)
        return self._names[key]
