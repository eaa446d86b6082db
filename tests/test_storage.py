import json
from decimal import Decimal

import pytest

from cryptoalertbot.errors import PersistenceError
from cryptoalertbot.models import AboveAlert, ExactAlert, PercentageAlert, WalletAlert
from cryptoalertbot.storage import AlertStore

pytestmark = pytest.mark.anyio


async def test_writes_upsert_users(store):
    await store.append_alert(1, AboveAlert(token='BTC', target_price=50000, last_price=45000), username='bob')
    await store.append_alert(1, ExactAlert(token='ETH', target_price=3000, last_price=2000))

    users = await store.users_with_alerts()
    assert len(users) == 1
    assert users[0].username == 'bob'
    assert [a.kind for a in users[0].alerts] == ['above', 'exact']


async def test_round_trip_through_file(store):
    pct = PercentageAlert(token='SOL', threshold=0.1, direction='down', last_price=150)
    wallet = WalletAlert(address='0x' + 'a' * 40, network='polygon', min_value=Decimal('0.25'), name='hot')
    await store.append_alert(4, pct)
    await store.append_wallet_alert(4, wallet)

    reloaded = AlertStore(store.path)
    await reloaded.load()
    user = await reloaded.get_user(4)

    assert user.alerts == [pct]
    assert isinstance(user.alerts[0], PercentageAlert)
    assert user.wallet_alerts == [wallet]
    assert isinstance(user.wallet_alerts[0].min_value, Decimal)


async def test_update_and_delete(store):
    a = AboveAlert(token='BTC', target_price=50000, last_price=45000)
    b = AboveAlert(token='BTC', target_price=60000, last_price=45000)
    await store.append_alert(1, a)
    await store.append_alert(1, b)

    assert await store.update_alert_last_price(1, a.id, 47000)
    assert await store.delete_alert(1, b.id)
    assert not await store.delete_alert(1, b.id)
    assert not await store.update_alert_last_price(1, b.id, 1)
    assert not await store.delete_alert(99, a.id)

    user = await store.get_user(1)
    assert [(x.id, x.last_price) for x in user.alerts] == [(a.id, 47000)]


async def test_users_without_alerts_are_not_listed(store):
    a = AboveAlert(token='BTC', target_price=50000, last_price=45000)
    await store.append_alert(1, a)
    await store.delete_alert(1, a.id)
    assert await store.users_with_alerts() == []
    assert await store.get_user(1) is not None


async def test_wallet_alerts_by_network(store):
    await store.append_wallet_alert(1, WalletAlert(address='0x' + 'a' * 40, network='ethereum', min_value=Decimal(1)))
    await store.append_wallet_alert(1, WalletAlert(address='0x' + 'b' * 40, network='bsc', min_value=Decimal(1)))
    await store.append_wallet_alert(2, WalletAlert(address='0x' + 'c' * 40, network='bsc', min_value=Decimal(1)))

    eth = await store.users_with_wallet_alerts('ethereum')
    bsc = await store.users_with_wallet_alerts('bsc')

    assert [(u.user_id, [w.network for w in u.wallet_alerts]) for u in eth] == [(1, ['ethereum'])]
    assert sorted(u.user_id for u in bsc) == [1, 2]
    assert await store.users_with_wallet_alerts('polygon') == []


async def test_reads_are_copies(store):
    a = AboveAlert(token='BTC', target_price=50000, last_price=45000)
    await store.append_alert(1, a)
    a.last_price = 1

    user = (await store.users_with_alerts())[0]
    user.alerts[0].last_price = 2
    user.alerts.clear()

    assert (await store.get_user(1)).alerts[0].last_price == 45000


async def test_missing_file_starts_empty(store):
    await store.load()
    assert await store.users_with_alerts() == []


async def test_corrupt_file_is_a_persistence_error(tmp_path):
    path = tmp_path / 'users.json'
    path.write_text('{not json')
    with pytest.raises(PersistenceError):
        await AlertStore(str(path)).load()


async def test_unknown_alert_kind_is_a_persistence_error(tmp_path):
    path = tmp_path / 'users.json'
    path.write_text(json.dumps({'users': [{'user_id': 1, 'alerts': [{'kind': 'sideways', 'token': 'BTC'}]}]}))
    with pytest.raises(PersistenceError):
        await AlertStore(str(path)).load()


async def test_write_failure_is_a_persistence_error(tmp_path):
    store = AlertStore(str(tmp_path / 'missing-dir' / 'users.json'))
    with pytest.raises(PersistenceError):
        await store.append_alert(1, AboveAlert(token='BTC', target_price=1, last_price=0.5))


def fail_next_write(store):
    real = store._flush

    def flush():
        store._flush = real
        raise PersistenceError('disk full')

    store._flush = flush


async def on_disk(store):
    reloaded = AlertStore(store.path)
    await reloaded.load()
    user = await reloaded.get_user(1)
    return [(a.id, a.last_price) for a in user.alerts]


async def in_memory(store):
    return [(a.id, a.last_price) for a in (await store.get_user(1)).alerts]


async def test_failed_delete_keeps_memory_and_disk_in_step(store):
    a = AboveAlert(token='BTC', target_price=50000, last_price=45000)
    await store.append_alert(1, a)

    fail_next_write(store)
    with pytest.raises(PersistenceError):
        await store.delete_alert(1, a.id)

    assert await in_memory(store) == await on_disk(store) == [(a.id, 45000)]
    assert await store.delete_alert(1, a.id)
    assert await in_memory(store) == await on_disk(store) == []


async def test_failed_price_update_keeps_memory_and_disk_in_step(store):
    a = AboveAlert(token='BTC', target_price=50000, last_price=45000)
    await store.append_alert(1, a)

    fail_next_write(store)
    with pytest.raises(PersistenceError):
        await store.update_alert_last_price(1, a.id, 47000)

    assert await in_memory(store) == await on_disk(store) == [(a.id, 45000)]


async def test_failed_append_is_rolled_back(store):
    await store.append_alert(1, AboveAlert(token='BTC', target_price=50000, last_price=45000))

    fail_next_write(store)
    with pytest.raises(PersistenceError):
        await store.append_alert(1, AboveAlert(token='ETH', target_price=4000, last_price=3000))

    assert await in_memory(store) == await on_disk(store)
    assert len(await in_memory(store)) == 1
