from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated bearer token.

    ``user_id`` is the learner id for learner-facing endpoints.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles
