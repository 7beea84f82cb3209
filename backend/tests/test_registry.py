"""Tests for the device token registry."""
import asyncio
import json

import pytest

from pushhub.domain.common.errors import InvalidGateway, ValidationError
from pushhub.domain.push.models import Gateway
from pushhub.infra.push.registry import registry_key


async def test_register_then_list_round_trip(registry):
    assert await registry.register("user-1", "huawei", "dev1", "tok1") is True

    listed = await registry.list_tokens("user-1")

    assert list(listed) == [Gateway.HUAWEI]
    [record] = listed[Gateway.HUAWEI]
    assert record.token == "tok1"
    assert record.device_id == "dev1"
    assert record.gateway is Gateway.HUAWEI
    assert record.updated_at is not None


async def test_reregistering_same_device_replaces_token(registry):
    await registry.register("user-1", "xiaomi", "dev1", "old-token")
    await registry.register("user-1", "xiaomi", "dev1", "new-token")

    listed = await registry.list_tokens("user-1")

    assert [r.token for r in listed[Gateway.XIAOMI]] == ["new-token"]


async def test_same_device_on_two_gateways_is_two_entries(registry):
    await registry.register("user-1", "xiaomi", "dev1", "x-tok")
    await registry.register("user-1", "apns", "dev1", "a-tok")

    tokens = await registry.tokens_by_gateway("user-1")

    assert tokens == {Gateway.XIAOMI: ["x-tok"], Gateway.APNS: ["a-tok"]}


async def test_invalid_gateway_rejected_before_store_mutation(registry, store):
    with pytest.raises(InvalidGateway):
        await registry.register("user-1", "fcm", "dev1", "tok")
    assert store.mutations() == []


async def test_invalid_gateway_is_a_validation_error(registry):
    with pytest.raises(ValidationError):
        await registry.register("user-1", "nokia", "dev1", "tok")


async def test_empty_token_rejected(registry, store):
    with pytest.raises(ValidationError):
        await registry.register("user-1", "vivo", "dev1", "")
    assert store.mutations() == []


async def test_register_refreshes_thirty_day_ttl(registry, store):
    await registry.register("user-1", "oppo", "dev1", "tok")

    ttl = store.ttl(registry_key("user-1"))
    assert 30 * 86400 - 5 < ttl <= 30 * 86400


async def test_list_unknown_user_is_empty(registry):
    assert await registry.list_tokens("nobody") == {}
    assert await registry.tokens_by_gateway("nobody") == {}


async def test_remove_clears_device_from_every_gateway(registry):
    await registry.register("user-1", "huawei", "dev1", "h-tok")
    await registry.register("user-1", "apns", "dev1", "a-tok")
    await registry.register("user-1", "apns", "dev2", "a-tok-2")

    assert await registry.remove("user-1", "dev1") is True

    listed = await registry.list_tokens("user-1")
    assert list(listed) == [Gateway.APNS]
    assert [r.device_id for r in listed[Gateway.APNS]] == ["dev2"]


async def test_remove_scoped_to_one_gateway(registry):
    await registry.register("user-1", "huawei", "dev1", "h-tok")
    await registry.register("user-1", "apns", "dev1", "a-tok")

    assert await registry.remove("user-1", "dev1", gateway="apns") is True

    assert await registry.tokens_by_gateway("user-1") == {Gateway.HUAWEI: ["h-tok"]}


async def test_remove_with_invalid_gateway_raises(registry, store):
    with pytest.raises(InvalidGateway):
        await registry.remove("user-1", "dev1", gateway="blackberry")
    assert store.mutations() == []


async def test_remove_for_user_without_tokens_returns_false(registry, store):
    assert await registry.remove("user-1", "dev1") is False
    assert [c for c in store.mutations() if c[0] != "hdel"] == []


async def test_removing_last_device_empties_registry(registry):
    await registry.register("user-1", "vivo", "dev1", "tok")
    await registry.remove("user-1", "dev1")

    assert await registry.list_tokens("user-1") == {}


async def test_concurrent_registrations_for_different_devices_are_all_kept(registry):
    await asyncio.gather(
        *(registry.register("user-1", "xiaomi", f"dev{i}", f"tok{i}") for i in range(10))
    )

    tokens = await registry.tokens_by_gateway("user-1")
    assert sorted(tokens[Gateway.XIAOMI]) == sorted(f"tok{i}" for i in range(10))


async def test_stored_record_uses_camel_case_json(registry, store):
    await registry.register("user-1", "apns", "dev1", "tok1")

    raw = store.hashes[registry_key("user-1")]["apns:dev1"]
    assert set(json.loads(raw)) == {"token", "deviceId", "gateway", "updatedAt"}


async def test_malformed_records_are_skipped(registry, store):
    await registry.register("user-1", "apns", "dev1", "tok1")
    store.hashes[registry_key("user-1")]["apns:broken"] = "{not json"
    store.hashes[registry_key("user-1")]["fcm:dev9"] = json.dumps(
        {"token": "t", "deviceId": "dev9", "gateway": "fcm", "updatedAt": "2026-01-01T00:00:00Z"}
    )

    listed = await registry.list_tokens("user-1")

    assert [r.token for r in listed[Gateway.APNS]] == ["tok1"]
    assert list(listed) == [Gateway.APNS]
