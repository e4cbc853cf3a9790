from __future__ import annotations

from dataclasses import dataclass

# Roles allowed to issue and revoke certificates.
OPERATOR_ROLES = frozenset({"admin", "operator"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity extracted from a validated bearer token.

    user_id: `sub` claim
    roles:   role claim supplied by the identity provider
    """

    user_id: str
    roles: frozenset[str]

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)
