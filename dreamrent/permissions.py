"""Section and tab permission model.

Access is granted per user: a set of dashboard sections plus, for the
sections that have sub-tabs, an access level for every tab. No roles are
involved. One account, the protected super-admin, always holds every grant.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel


class Section(str, Enum):
    """Dashboard sections a user may be granted."""

    DASHBOARD = "dashboard"
    FINANCES = "finances"
    MOTORCYCLES = "motorcycles"
    MOPEDS = "mopeds"
    CARS = "cars"
    APARTMENTS = "apartments"
    CLIENTS = "clients"
    PROJECTS = "projects"
    SETTINGS = "settings"
    HELP = "help"
    USERS = "users"


class Tab(str, Enum):
    """Sub-tabs of the tab-bearing sections."""

    RENTALS = "rentals"
    INVENTORY = "inventory"
    CONTACTS = "contacts"


class AccessLevel(str, Enum):
    """Access level of a single tab."""

    NONE = "none"
    VIEW = "view"
    EDIT = "edit"


TAB_SECTIONS = (Section.MOPEDS, Section.CARS, Section.MOTORCYCLES, Section.APARTMENTS)

SECTION_LABELS: Dict[Section, str] = {
    Section.DASHBOARD: "Dashboard",
    Section.FINANCES: "Finances",
    Section.MOTORCYCLES: "Motorcycles",
    Section.MOPEDS: "Mopeds",
    Section.CARS: "Cars",
    Section.APARTMENTS: "Apartments",
    Section.CLIENTS: "Clients",
    Section.PROJECTS: "Projects",
    Section.SETTINGS: "Settings",
    Section.HELP: "Help",
    Section.USERS: "Users",
}

#: Level applied when a user has no explicit grant for a tab.
DEFAULT_TAB_ACCESS: Dict[Section, Dict[Tab, AccessLevel]] = {
    section: {tab: AccessLevel.VIEW for tab in Tab} for section in TAB_SECTIONS
}


class TabGrant(BaseModel):
    """Access level granted on one tab."""

    tab: Tab
    access: AccessLevel


TabPermissions = Dict[Section, List[TabGrant]]


def all_sections() -> List[Section]:
    return list(Section)


def full_tab_permissions() -> TabPermissions:
    """Return a grant map with ``edit`` on every tab of every tab section."""
    return {
        section: [TabGrant(tab=tab, access=AccessLevel.EDIT) for tab in Tab]
        for section in TAB_SECTIONS
    }


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_section(value: Any) -> Optional[Section]:
    if isinstance(value, Section):
        return value
    try:
        return Section(value)
    except ValueError:
        return None


def parse_tab(value: Any) -> Optional[Tab]:
    if isinstance(value, Tab):
        return value
    try:
        return Tab(value)
    except ValueError:
        return None


def parse_access_level(value: Any) -> Optional[AccessLevel]:
    if isinstance(value, AccessLevel):
        return value
    try:
        return AccessLevel(value)
    except ValueError:
        return None


def parse_permissions(raw: Any) -> List[Section]:
    """Read a persisted permission list, keeping only known sections.

    Stored blobs are not trusted: anything that is not a list yields an
    empty grant set and unknown identifiers are dropped.
    """
    if not isinstance(raw, (list, tuple, set)):
        return []
    sections: List[Section] = []
    for item in raw:
        section = parse_section(item)
        if section is not None and section not in sections:
            sections.append(section)
    return sections


def parse_tab_permissions(raw: Any) -> TabPermissions:
    """Read a persisted tab grant map, keeping only well-formed entries."""
    if not isinstance(raw, Mapping):
        return {}
    result: TabPermissions = {}
    for key, grants in raw.items():
        section = parse_section(key)
        if section not in TAB_SECTIONS or not isinstance(grants, (list, tuple)):
            continue
        parsed: List[TabGrant] = []
        for grant in grants:
            if isinstance(grant, TabGrant):
                parsed.append(grant)
                continue
            if not isinstance(grant, Mapping):
                continue
            tab = parse_tab(grant.get("tab"))
            access = parse_access_level(grant.get("access"))
            if tab is not None and access is not None:
                parsed.append(TabGrant(tab=tab, access=access))
        result[section] = parsed
    return result


def dump_tab_permissions(tab_permissions: TabPermissions) -> Dict[str, List[Dict[str, str]]]:
    return {
        section.value: [
            {"tab": grant.tab.value, "access": grant.access.value} for grant in grants
        ]
        for section, grants in tab_permissions.items()
    }


def is_protected_email(email: Optional[str], protected_email: str) -> bool:
    if not email:
        return False
    return normalize_email(email) == normalize_email(protected_email)


def resolve_tab_access(
    tab_permissions: TabPermissions, section: Section, tab: Tab
) -> AccessLevel:
    """Return the effective level of ``tab``, falling back to the defaults."""
    for grant in tab_permissions.get(section, []):
        if grant.tab == tab:
            return grant.access
    return DEFAULT_TAB_ACCESS.get(section, {}).get(tab, AccessLevel.NONE)


def level_satisfies(granted: AccessLevel, required: AccessLevel) -> bool:
    if granted == AccessLevel.EDIT:
        return required in (AccessLevel.VIEW, AccessLevel.EDIT)
    if granted == AccessLevel.VIEW:
        return required == AccessLevel.VIEW
    return False


def has_permission(
    permissions: Iterable[Section], section: Any, protected: bool = False
) -> bool:
    section = parse_section(section)
    if section is None:
        return False
    if protected:
        return True
    return section in set(permissions)


def has_tab_access(
    permissions: Iterable[Section],
    tab_permissions: TabPermissions,
    section: Any,
    tab: Any,
    level: Any,
    protected: bool = False,
) -> bool:
    """Check whether a grant set allows ``level`` access on ``section``/``tab``.

    Args:
        permissions: Sections granted to the user.
        tab_permissions: Explicit per-tab grants of the user.
        section: Section identifier (enum member or its value).
        tab: Tab identifier (enum member or its value).
        level: Required level, ``view`` or ``edit``.
        protected: Whether the user is the protected super-admin.

    Returns:
        bool: ``True`` when access is allowed. Unknown identifiers are denied.
    """
    section = parse_section(section)
    tab = parse_tab(tab)
    level = parse_access_level(level)
    if section is None or tab is None or level is None or level == AccessLevel.NONE:
        return False
    if protected:
        return True
    if not has_permission(permissions, section):
        return False
    return level_satisfies(resolve_tab_access(tab_permissions, section, tab), level)
