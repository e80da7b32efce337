"""Certificate identity and records."""

from __future__ import annotations

import re
from dataclasses import dataclass

from kfutil.domain.errors import InputError

THUMBPRINT_PATTERN = re.compile(r"^[0-9A-Fa-f]{40}$")
CERT_ID_PATTERN = re.compile(r"^\d+$")


def is_thumbprint(text: str) -> bool:
    return bool(THUMBPRINT_PATTERN.match(text.strip()))


def normalize_thumbprint(text: str) -> str:
    return text.strip().upper()


@dataclass(slots=True, frozen=True)
class CertificateRef:
    """Reference to a certificate as written in an input file.

    Exactly one of ``thumbprint`` and ``cert_id`` is set.
    """

    thumbprint: str | None = None
    cert_id: int | None = None

    def __post_init__(self) -> None:
        if (self.thumbprint is None) == (self.cert_id is None):
            raise ValueError("CertificateRef needs exactly one of thumbprint or cert_id")

    @classmethod
    def parse(cls, text: str) -> CertificateRef:
        value = text.strip()
        if is_thumbprint(value):
            return cls(thumbprint=normalize_thumbprint(value))
        if CERT_ID_PATTERN.match(value):
            return cls(cert_id=int(value))
        raise InputError(f"{value!r} is neither a 40 character thumbprint nor a certificate id")

    def __str__(self) -> str:
        return self.thumbprint if self.thumbprint is not None else str(self.cert_id)


@dataclass(slots=True, frozen=True)
class CertificateRecord:
    cert_id: int
    thumbprint: str
    issued_dn: str = ""
    issuer_dn: str = ""
    serial_number: str | None = None
    issued_cn: str | None = None


@dataclass(slots=True, frozen=True)
class CertificateQuery:
    """Filter for listing certificates when prefilling a certificates template."""

    issued_cn: str | None = None
    collection_id: int | None = None
