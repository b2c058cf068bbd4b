from dreamrent.permissions import (
    AccessLevel,
    Section,
    Tab,
    TabGrant,
    full_tab_permissions,
    has_permission,
    has_tab_access,
    level_satisfies,
    parse_permissions,
    parse_tab_permissions,
    resolve_tab_access,
)


def test_level_ordering():
    assert level_satisfies(AccessLevel.EDIT, AccessLevel.EDIT)
    assert level_satisfies(AccessLevel.EDIT, AccessLevel.VIEW)
    assert level_satisfies(AccessLevel.VIEW, AccessLevel.VIEW)
    assert not level_satisfies(AccessLevel.VIEW, AccessLevel.EDIT)
    assert not level_satisfies(AccessLevel.NONE, AccessLevel.VIEW)
    assert not level_satisfies(AccessLevel.NONE, AccessLevel.EDIT)


def test_tab_access_requires_section_permission():
    grants = {Section.MOPEDS: [TabGrant(tab=Tab.RENTALS, access=AccessLevel.EDIT)]}
    assert not has_tab_access([], grants, "mopeds", "rentals", "view")
    assert has_tab_access([Section.MOPEDS], grants, "mopeds", "rentals", "edit")


def test_tab_access_levels():
    grants = {
        Section.MOPEDS: [
            TabGrant(tab=Tab.RENTALS, access=AccessLevel.VIEW),
            TabGrant(tab=Tab.CONTACTS, access=AccessLevel.NONE),
        ]
    }
    sections = [Section.MOPEDS]
    assert has_tab_access(sections, grants, Section.MOPEDS, Tab.RENTALS, AccessLevel.VIEW)
    assert not has_tab_access(sections, grants, Section.MOPEDS, Tab.RENTALS, AccessLevel.EDIT)
    assert not has_tab_access(sections, grants, Section.MOPEDS, Tab.CONTACTS, AccessLevel.VIEW)
    # no explicit grant: default view
    assert has_tab_access(sections, grants, Section.MOPEDS, Tab.INVENTORY, AccessLevel.VIEW)
    assert not has_tab_access(sections, grants, Section.MOPEDS, Tab.INVENTORY, AccessLevel.EDIT)


def test_unknown_identifiers_are_denied():
    sections = [Section.MOPEDS]
    assert not has_permission(sections, "garage")
    assert not has_tab_access(sections, {}, "mopeds", "garage", "view")
    assert not has_tab_access(sections, {}, "mopeds", "rentals", "admin")
    assert not has_tab_access(sections, {}, "mopeds", "rentals", "none")


def test_protected_user_passes_every_check():
    assert has_permission([], Section.USERS, protected=True)
    assert has_tab_access([], {}, "cars", "inventory", "edit", protected=True)
    assert not has_permission([], "nonsense", protected=True)


def test_parse_corrupted_blobs():
    assert parse_permissions("users") == []
    assert parse_permissions(None) == []
    assert parse_permissions(["users", "bogus", "users", 3]) == [Section.USERS]

    assert parse_tab_permissions("oops") == {}
    parsed = parse_tab_permissions(
        {
            "mopeds": [
                {"tab": "rentals", "access": "edit"},
                {"tab": "rentals"},
                {"tab": "garage", "access": "view"},
                "junk",
            ],
            "users": [{"tab": "rentals", "access": "edit"}],
            "cars": "not a list",
        }
    )
    assert parsed == {Section.MOPEDS: [TabGrant(tab=Tab.RENTALS, access=AccessLevel.EDIT)]}


def test_full_tab_permissions_grant_edit_everywhere():
    grants = full_tab_permissions()
    for section in (Section.MOPEDS, Section.CARS, Section.MOTORCYCLES, Section.APARTMENTS):
        for tab in Tab:
            assert resolve_tab_access(grants, section, tab) == AccessLevel.EDIT
