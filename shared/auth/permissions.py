"""Roles del staff y capacidades que habilitan cada acción"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable

from shared.utils.errors import AccessDenied


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    REGISTRATIONS_MANAGER = "registrations_manager"
    CHECKIN_OPERATOR = "checkin_operator"


class Capability(str, Enum):
    VIEW_DASHBOARD = "view_dashboard"
    CHECKIN = "checkin"
    EDIT_REGISTRATIONS = "edit_registrations"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_STAFF = "manage_staff"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.ADMIN: frozenset({
        Capability.VIEW_DASHBOARD,
        Capability.CHECKIN,
        Capability.EDIT_REGISTRATIONS,
        Capability.MANAGE_SETTINGS,
    }),
    Role.REGISTRATIONS_MANAGER: frozenset({
        Capability.VIEW_DASHBOARD,
        Capability.EDIT_REGISTRATIONS,
        Capability.MANAGE_SETTINGS,
    }),
    Role.CHECKIN_OPERATOR: frozenset({
        Capability.VIEW_DASHBOARD,
        Capability.CHECKIN,
    }),
}


@dataclass(frozen=True)
class AccessLevel:
    """Roles reconocidos de una identidad y la unión de sus capacidades"""

    roles: FrozenSet[Role]
    capabilities: FrozenSet[Capability]

    def allows(self, capability: Capability) -> bool:
        return capability in self.capabilities


def parse_roles(role_tags: Iterable[str]) -> FrozenSet[Role]:
    """Filtrar las etiquetas de rol a las reconocidas; las demás se ignoran"""
    recognised = set()
    for tag in role_tags:
        try:
            recognised.add(Role(tag))
        except ValueError:
            continue
    return frozenset(recognised)


def resolve_access(role_tags: Iterable[str]) -> AccessLevel:
    """
    Resolver el nivel de acceso de una identidad a partir de sus roles

    Raises:
        AccessDenied: Si la identidad no tiene ningún rol reconocido
    """
    roles = parse_roles(role_tags)
    if not roles:
        raise AccessDenied("El usuario no tiene permisos de staff")

    capabilities = frozenset().union(*(ROLE_CAPABILITIES[role] for role in roles))
    return AccessLevel(roles=roles, capabilities=capabilities)
