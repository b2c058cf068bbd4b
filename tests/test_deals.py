from dreamrent.schemas import (
    ContactCreate,
    ContactRole,
    ContactStatus,
    CustomFieldValue,
    DealCreate,
    DealUpdate,
    TaskCounter,
)


async def new_deal(services, **kwargs):
    kwargs.setdefault("client_name", "Aru")
    kwargs.setdefault("stage", "new")
    deal = await services.deals.create_deal(DealCreate(**kwargs))
    assert deal is not None
    return deal


async def test_create_deal_with_board_fields(services):
    deal = await new_deal(
        services,
        phone="+77010000001",
        tasks=TaskCounter(completed=1, total=3),
        custom_fields=[CustomFieldValue(field_id="budget", value=15000)],
        assignees=["manager-1"],
    )
    assert deal.tasks.total == 3
    assert deal.custom_fields[0].field_id == "budget"
    assert deal.custom_fields[0].value == 15000
    assert deal.comments == 0

    dumped = deal.model_dump(by_alias=True)
    assert "clientName" in dumped
    assert "contactIIN" in dumped


async def test_stage_queries_and_moves(services):
    first = await new_deal(services, stage="new")
    await new_deal(services, stage="issued")

    assert [d.id for d in await services.deals.get_deals_by_stage("new")] == [first.id]
    moved = await services.deals.move_deal_to_stage(first.id, "issued")
    assert moved.stage == "issued"
    assert len(await services.deals.get_deals_by_stage("issued")) == 2
    assert await services.deals.move_deal_to_stage("missing", "issued") is None


async def test_snapshot_edits_do_not_touch_contacts(services):
    contact = await services.contacts.add_contact(ContactCreate(name="Dana", phone="+7701"))
    deal = await new_deal(services, contact_name="Dana", contact_phone="+7701")

    await services.deals.update_deal(deal.id, DealUpdate(contact_name="Dana Changed"))
    unchanged = await services.contacts.get_contact_by_id(contact.id)
    assert unchanged.name == "Dana"


async def test_commit_creates_missing_contact(services):
    deal = await new_deal(
        services,
        contact_name="  Timur  ",
        contact_phone="+77020000000",
        contact_iin="900101300000",
        contact_status="blocked",
    )
    result = await services.deals.commit_contact(deal.id, ContactRole.PRIMARY, created_by="Manager")
    assert result.created
    assert result.contact.name == "Timur"
    assert result.contact.iin == "900101300000"
    assert result.contact.status == ContactStatus.BLOCKED
    assert result.contact.created_by == "Manager"
    assert len(await services.contacts.get_contacts()) == 1


async def test_commit_pulls_existing_contact(services):
    contact = await services.contacts.add_contact(
        ContactCreate(name="Zarina Akhmetova", phone="+77030000000", doc_number="N42")
    )
    deal = await new_deal(
        services,
        emergency_contact_name="zarina",
        emergency_contact_phone="+7700",
        emergency_contact_iin="880202400000",
    )
    result = await services.deals.commit_contact(deal.id, ContactRole.EMERGENCY)
    assert not result.created
    assert result.contact.id == contact.id
    assert result.deal.emergency_contact_name == "Zarina Akhmetova"
    assert result.deal.emergency_contact_phone == "+77030000000"
    assert result.deal.emergency_contact_doc_number == "N42"
    assert result.deal.emergency_contact_iin == "880202400000"
    assert result.deal.emergency_contact_status == "active"
    assert len(await services.contacts.get_contacts()) == 1


async def test_commit_needs_name_and_phone(services):
    deal = await new_deal(services, contact_name="Only Name")
    result = await services.deals.commit_contact(deal.id, ContactRole.PRIMARY)
    assert result.contact is None
    assert not result.created
    assert await services.contacts.get_contacts() == []
    assert await services.deals.commit_contact("missing", ContactRole.PRIMARY) is None
