"""
Request context and document numbering.

The tenant and user a form is opened for are passed in explicitly as a
``RequestContext`` instead of being read from ambient session storage.
Document numbers are derived from that context and an injected Clock.
"""

from __future__ import annotations

from dataclasses import dataclass

from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Tenant/user the current form session belongs to."""

    tenant_id: str = "1"
    user_id: str | None = None

    def __post_init__(self) -> None:
        tenant = str(self.tenant_id).strip() if self.tenant_id is not None else ""
        if not tenant:
            raise ValidationError("tenant_id is required")
        object.__setattr__(self, "tenant_id", tenant)

    def log_fields(self) -> dict[str, str]:
        fields = {"tenant_id": self.tenant_id}
        if self.user_id is not None:
            fields["user_id"] = str(self.user_id)
        return fields


def generate_document_number(prefix: str, context: RequestContext, clock: Clock) -> str:
    """
    Build a document number such as ``PINV-115032024103045123``.

    Layout: ``{prefix}-{tenant_id}{DD}{MM}{YYYY}{hh}{mm}{ss}{fff}`` using the
    clock's local time and milliseconds.
    """
    if not prefix or not prefix.strip():
        raise ValidationError("Document number prefix is required")
    now = clock.now()
    stamp = now.strftime("%d%m%Y%H%M%S") + f"{now.microsecond // 1000:03d}"
    return f"{prefix.strip()}-{context.tenant_id}{stamp}"
