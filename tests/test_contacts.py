from dreamrent.container import build_services
from dreamrent.schemas import ContactCreate, ContactStatus, ContactUpdate

from conftest import BrokenSource


async def add(services, name, phone, **kwargs):
    contact = await services.contacts.add_contact(ContactCreate(name=name, phone=phone, **kwargs))
    assert contact is not None
    return contact


async def test_create_normalizes_optional_text(services):
    contact = await add(services, "Aigerim", "+77010000001", iin="  ", doc_number=" N123 ")
    assert contact.iin is None
    assert contact.doc_number == "N123"
    assert contact.status == ContactStatus.ACTIVE


async def test_find_by_partial_name_any_case(services):
    await add(services, "Aigerim Nurlanovna", "+77010000001")
    found = await services.contacts.find_contact_by_name_or_phone(name="nurlan")
    assert found is not None and found.name == "Aigerim Nurlanovna"


async def test_find_prefers_exact_phone(services):
    await add(services, "Dana", "+77010000001")
    phone_match = await add(services, "Someone Else", "+77010000002")
    found = await services.contacts.find_contact_by_name_or_phone("Dana", "+77010000002")
    assert found.id == phone_match.id


async def test_find_without_criteria_or_match(services):
    await add(services, "Dana", "+77010000001")
    assert await services.contacts.find_contact_by_name_or_phone("  ", None) is None
    assert await services.contacts.find_contact_by_name_or_phone("Zarina", "+70000000000") is None


async def test_like_wildcards_are_literal(services):
    await add(services, "Dana", "+77010000001")
    assert await services.contacts.find_contact_by_name_or_phone("%") is None


async def test_list_is_cached_until_write(services, source):
    first = await add(services, "First", "1")
    assert [c.id for c in await services.contacts.get_contacts()] == [first.id]

    await source.insert("contacts", {"name": "Behind the cache", "phone": "2"})
    assert len(await services.contacts.get_contacts()) == 1
    await services.contacts.cache.drain()
    assert len(await services.contacts.get_contacts()) == 2


async def test_rows_failing_validation_are_skipped(services, source):
    good = await add(services, "Dana", "1")
    bad = await source.insert("contacts", {"name": "Ann", "phone": "2", "status": "archived"})

    assert [c.id for c in await services.contacts.get_contacts()] == [good.id]
    assert await services.contacts.get_contact_by_id(bad["id"]) is None
    assert await services.contacts.find_contact_by_name_or_phone("Ann") is None


async def test_update_and_delete(services):
    contact = await add(services, "Dana", "+77010000001")
    updated = await services.contacts.update_contact(
        contact.id, ContactUpdate(status=ContactStatus.BLOCKED)
    )
    assert updated.status == ContactStatus.BLOCKED
    assert updated.name == "Dana"

    assert await services.contacts.delete_contact(contact.id)
    assert not await services.contacts.delete_contact(contact.id)
    assert await services.contacts.get_contact_by_id(contact.id) is None


async def test_unreachable_source(settings, store, clock):
    offline = build_services(settings, BrokenSource(), store, clock)
    assert await offline.contacts.get_contacts() == []
    assert await offline.contacts.add_contact(ContactCreate(name="X", phone="1")) is None
    assert await offline.contacts.find_contact_by_name_or_phone("X") is None
