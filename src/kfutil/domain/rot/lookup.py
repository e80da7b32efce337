from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from kfutil.domain.errors import LookupFailure
from kfutil.domain.ports.gateway import GatewayError

if TYPE_CHECKING:
    from kfutil.domain.model import CertificateRecord, CertificateRef
    from kfutil.domain.ports.gateway import PlatformGateway

log = getLogger(__name__)


def resolve_certificate(
    gateway: PlatformGateway,
    ref: CertificateRef,
) -> CertificateRecord | LookupFailure:
    """Look a certificate up, turning gateway errors into a ``LookupFailure``."""

    try:
        if ref.thumbprint is not None:
            return gateway.lookup_certificate(thumbprint=ref.thumbprint)
        return gateway.lookup_certificate(cert_id=ref.cert_id)
    except GatewayError as exc:
        log.warning("Unable to look up certificate %s: %s", ref, exc)
        return LookupFailure(f"certificate lookup failed: {exc}", subject=str(ref))
