"""Authentication models for the dashboard API.

Provides the verified identity handed over by the token verifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

# Custom Auth0 claim, added by a login action
DEFAULT_EMAIL_CLAIM = "https://rddigitech.ca/email"
STANDARD_EMAIL_CLAIM = "email"


def email_claim_chain(primary: Optional[str] = None) -> Tuple[str, ...]:
    """Ordered claim names to try when looking up the caller's email."""
    primary = primary or DEFAULT_EMAIL_CLAIM
    if primary == STANDARD_EMAIL_CLAIM:
        return (STANDARD_EMAIL_CLAIM,)
    return (primary, STANDARD_EMAIL_CLAIM)


def resolve_email(
    claims: Mapping[str, Any], claim_names: Sequence[str]
) -> Optional[str]:
    """Return the value of the first present claim in ``claim_names``.

    Lookup stops at the first claim that is present (not null); a blank
    value there yields None rather than falling through to later claims.
    """
    for name in claim_names:
        value = claims.get(name)
        if value is None:
            continue
        return str(value).strip() or None
    return None


@dataclass
class VerifiedIdentity:
    """Identity of a caller whose token has already been verified.

    Attributes:
        subject: Token subject ('sub' claim)
        claims: Verified JWT payload
        email_claims: Claim names consulted for the email, in priority order
    """

    subject: Optional[str]
    claims: Dict[str, Any] = field(default_factory=dict)
    email_claims: Tuple[str, ...] = field(default_factory=email_claim_chain)

    @property
    def email(self) -> Optional[str]:
        """Caller email from the first claim in the fallback chain, or None."""
        return resolve_email(self.claims, self.email_claims)
