import pytest

from dreamrent.container import build_services
from dreamrent.mappers import normalize_mileage, normalize_text
from dreamrent.schemas import MopedCondition, MopedCreate, MopedUpdate


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        (1200, 1200.0),
        (15.5, 15.5),
        ("12 300 km", 12300.0),
        ("  ", None),
        ("n/a", None),
        (True, None),
    ],
)
def test_normalize_mileage(value, expected):
    assert normalize_mileage(value) == expected


def test_normalize_text():
    assert normalize_text("  KZ 123  ") == "KZ 123"
    assert normalize_text("   ") is None
    assert normalize_text(None) is None


async def add(services, brand, plate, **kwargs):
    moped = await services.mopeds.add_moped(
        MopedCreate(brand=brand, model="Dio", license_plate=plate, **kwargs)
    )
    assert moped is not None
    return moped


async def test_add_normalizes_fields(services):
    moped = await add(
        services, "Honda", "01 KZ 777", mileage="8 450", grnz="  ", vin_code=" VIN1 ",
        condition=MopedCondition.GOOD,
    )
    assert moped.mileage == 8450.0
    assert moped.grnz is None
    assert moped.vin_code == "VIN1"
    assert moped.condition == MopedCondition.GOOD


async def test_inventory_ordered_by_brand(services):
    await add(services, "Yamaha", "A1")
    await add(services, "Honda", "A2")
    assert [m.brand for m in await services.mopeds.get_mopeds()] == ["Honda", "Yamaha"]


async def test_find_by_license_plate_ignores_case(services):
    moped = await add(services, "Honda", "01 KZ 777")
    found = await services.mopeds.find_moped_by_license_plate(" 01 kz 777 ")
    assert found.id == moped.id
    assert await services.mopeds.find_moped_by_license_plate("") is None
    assert await services.mopeds.find_moped_by_license_plate("999") is None


async def test_cached_lookup_by_id(services):
    moped = await add(services, "Honda", "A1")
    assert (await services.mopeds.get_moped_by_id_cached(moped.id)).id == moped.id
    assert await services.mopeds.get_moped_by_id_cached("missing") is None


async def test_update_and_batch_save(services):
    first = await add(services, "Honda", "A1")
    second = await add(services, "Suzuki", "A2")

    updated = await services.mopeds.update_moped(first.id, MopedUpdate(mileage="1 000"))
    assert updated.mileage == 1000.0

    edited = [m.model_copy(update={"color": "Red"}) for m in await services.mopeds.get_mopeds()]
    assert await services.mopeds.save_mopeds(edited)
    assert {m.color for m in await services.mopeds.get_mopeds()} == {"Red"}

    assert await services.mopeds.delete_moped(second.id)
    assert [m.id for m in await services.mopeds.get_mopeds()] == [first.id]


async def test_large_photos_are_stripped_from_cache(settings, source, store, clock):
    small = settings.model_copy(update={"CACHE_MAX_BYTES": 2000})
    limited = build_services(small, source, store, clock)
    await add(limited, "Honda", "A1", photo="data:image/png;base64," + "A" * 5000)

    listed = await limited.mopeds.get_mopeds()
    assert listed[0].photo is not None
    cached = await limited.mopeds.cache.read()
    assert cached[0].photo is None
    full = await limited.mopeds.get_moped_by_id(listed[0].id)
    assert full.photo.startswith("data:image/png")
