"""
Composable authorization guards.

A guard is a callable ``(caller, target) -> Optional[str]`` that returns a
failure message, or None when the caller may proceed. ``enforce`` runs a
tuple of guards and raises Forbidden with the first failure. Services
declare their guard tuples next to each operation so the authorization
table can be read (and tested) apart from the transition table.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from riskflow.core.auth import Caller
from riskflow.core.errors import Forbidden
from riskflow.schemas.enums import Role

Guard = Callable[[Caller, Any], Optional[str]]

REVIEWER = Role.KOMITE_PUSAT.value
OWNER_ROLE = Role.PENGELOLA_RISIKO_UKER.value
ADMIN = Role.ADMINISTRATOR.value


def has_role(*roles: str) -> Guard:
    def guard(caller: Caller, target: Any) -> Optional[str]:
        if caller.has_role(*roles):
            return None
        return f"Access denied. Requires role: {' or '.join(roles)}."
    guard.__name__ = f"has_role({','.join(roles)})"
    return guard


def is_owner(attr: str = "owner_id", noun: str = "owner") -> Guard:
    def guard(caller: Caller, target: Any) -> Optional[str]:
        if getattr(target, attr) == caller.user_id:
            return None
        return f"Access denied. Only the {noun} may perform this action."
    guard.__name__ = f"is_owner({attr})"
    return guard


def in_states(*states, noun: str = "document", attr: str = "status") -> Guard:
    allowed = frozenset(states)

    def guard(caller: Caller, target: Any) -> Optional[str]:
        current = getattr(target, attr)
        if current in allowed:
            return None
        names = ", ".join(sorted(s.value for s in allowed))
        return f"The {noun} cannot be changed in status {current.value} (allowed: {names})."
    guard.__name__ = f"in_states({','.join(sorted(s.value for s in allowed))})"
    return guard


def unit_member(allow_reviewer: bool = False, attr: str = "unit_id") -> Guard:
    """Caller belongs to ``target.<attr>``; reviewers may read across units."""
    def guard(caller: Caller, target: Any) -> Optional[str]:
        if allow_reviewer and caller.has_role(REVIEWER):
            return None
        if caller.unit_id is not None and caller.unit_id == getattr(target, attr):
            return None
        return "Access denied. You do not have access to this unit."
    guard.__name__ = f"unit_member(allow_reviewer={allow_reviewer})"
    return guard


def enforce(caller: Caller, target: Any, guards: Iterable[Guard]) -> None:
    for guard in guards:
        failure = guard(caller, target)
        if failure is not None:
            raise Forbidden(failure)


# ── Shared guard tuples ──
CONFIG_WRITE = (has_role(ADMIN, REVIEWER),)
REVIEW = (has_role(REVIEWER),)
