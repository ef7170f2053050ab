import pytest

import database


@pytest.fixture
async def db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "ecobot.db"))
    await database.init_db()


async def test_store_user_is_idempotent(db):
    assert await database.store_user(1) is True
    assert await database.store_user(1) is False
    assert await database.get_active_users() == [1]


async def test_blacklisted_users_are_not_active(db):
    for user_id in (1, 2, 3):
        await database.store_user(user_id)

    assert await database.blacklist_user(2) is True
    assert await database.blacklist_user(2) is False
    assert await database.blacklist_user(99) is False

    assert sorted(await database.get_active_users()) == [1, 3]


async def test_subscriptions(db):
    await database.store_user(1)

    assert await database.subscribe_user(1, "advent") is True
    assert await database.subscribe_user(1, "advent") is False
    assert await database.subscribe_user(1, "news") is True
    assert sorted(await database.get_user_subscriptions(1)) == ["advent", "news"]

    assert await database.unsubscribe_user(1, "advent") is True
    assert await database.unsubscribe_user(1, "advent") is False
    assert await database.get_user_subscriptions(1) == ["news"]


async def test_unsubscribe_all(db):
    await database.subscribe_user(1, "advent")
    await database.subscribe_user(1, "news")

    assert await database.unsubscribe_all(1) is True
    assert await database.unsubscribe_all(1) is False
    assert await database.get_user_subscriptions(1) == []


async def test_subscribers_exclude_blacklisted(db):
    for user_id in (1, 2):
        await database.store_user(user_id)
        await database.subscribe_user(user_id, "advent")
    await database.blacklist_user(1)

    assert await database.get_users_by_subscription("advent") == [2]
    assert await database.get_users_by_subscription("news") == []


async def test_bin_locations_filtering(db):
    inserted = await database.replace_bin_locations(
        [
            {"latitude": 54.71, "longitude": 20.51, "address": "ул. Ленина 1", "preset": "islands#darkgreenIcon"},
            {"latitude": 55.08, "longitude": 21.88, "address": "Советск, ул. Победы 2", "preset": ""},
            {"latitude": 54.72, "longitude": 20.52, "address": "ул. Мира 3", "preset": "islands#darkOrangeIcon"},
        ]
    )
    assert inserted == 3

    bins = await database.list_bin_locations()
    assert [b.address for b in bins] == ["ул. Ленина 1"]


async def test_replace_and_add_bin_locations(db):
    await database.replace_bin_locations([{"latitude": 1, "longitude": 2, "address": "old"}])
    await database.replace_bin_locations([{"latitude": 3, "longitude": 4, "address": "new"}])
    await database.add_bin_locations([{"latitude": 5, "longitude": 6, "address": "extra", "preset": "setka"}])

    bins = await database.list_bin_locations()
    assert sorted(b.address for b in bins) == ["extra", "new"]
