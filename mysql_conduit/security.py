"""
Native security provider interface used by the negotiated auth plugin.

The plugin only ever talks to `SecurityProvider`, the platform specific
part lives in an adapter. The adapter shipped here is backed by GSSAPI.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class SecurityStatus(IntEnum):
    OK = 0
    CONTINUE_NEEDED = 0x90312
    COMPLETE_NEEDED = 0x1013
    COMPLETE_AND_CONTINUE = 0x1014


class CredentialUse(IntEnum):
    INBOUND = 1
    OUTBOUND = 2
    BOTH = 3


@dataclass
class ContextResult:
    status: int
    token: Optional[bytes]
    context: Any


class SecurityProvider(abc.ABC):
    """
    Credential acquisition and token generation for negotiated authentication.

    Handles returned by this interface are opaque to callers and must be
    handed back to the matching release method.
    """

    @abc.abstractmethod
    def acquire_credentials(
        self, principal: Optional[str], package: str, use: CredentialUse
    ) -> Any: ...

    @abc.abstractmethod
    def initialize_context(
        self,
        credentials: Any,
        context: Optional[Any],
        target: Optional[str],
        token: Optional[bytes],
    ) -> ContextResult: ...

    @abc.abstractmethod
    def complete_token(
        self, context: Any, token: Optional[bytes]
    ) -> Optional[bytes]: ...

    @abc.abstractmethod
    def release_credentials(self, credentials: Any) -> None: ...

    @abc.abstractmethod
    def release_context(self, context: Any) -> None: ...


class GssapiSecurityProvider(SecurityProvider):
    """
    Adapter for python-gssapi.

    GSSAPI has no separate completion step, so `complete_token` returns the
    token unchanged and contexts only ever report OK or CONTINUE_NEEDED.

    Args:
        service: service name used to build the target when the server doesn't name one
    """

    def __init__(self, service: str = "mysql"):
        self.service = service

    def acquire_credentials(
        self, principal: Optional[str], package: str, use: CredentialUse
    ) -> Any:
        import gssapi

        name = gssapi.Name(principal, gssapi.NameType.user) if principal else None
        usage = "initiate" if use == CredentialUse.OUTBOUND else "both"
        logger.debug(
            "Acquiring %s credentials for %s", package, principal or "<default>"
        )
        return gssapi.Credentials(name=name, usage=usage)

    def initialize_context(
        self,
        credentials: Any,
        context: Optional[Any],
        target: Optional[str],
        token: Optional[bytes],
    ) -> ContextResult:
        import gssapi

        if context is None:
            if target:
                name = gssapi.Name(target, gssapi.NameType.kerberos_principal)
            else:
                name = gssapi.Name(self.service, gssapi.NameType.hostbased_service)
            context = gssapi.SecurityContext(
                name=name, creds=credentials, usage="initiate"
            )

        out = context.step(token)
        if context.complete:
            status = SecurityStatus.OK
        else:
            status = SecurityStatus.CONTINUE_NEEDED
        return ContextResult(status=status, token=out, context=context)

    def complete_token(self, context: Any, token: Optional[bytes]) -> Optional[bytes]:
        return token

    def release_credentials(self, credentials: Any) -> None:
        # python-gssapi frees credentials when they are garbage collected
        del credentials

    def release_context(self, context: Any) -> None:
        from gssapi.raw import delete_sec_context

        if context is not None and context.established:
            delete_sec_context(context, local_only=True)
