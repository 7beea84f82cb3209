"""Tests for the dispatcher: fan-out, aggregation, bulk sends and stats."""
import asyncio

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pushhub.domain.common.errors import GatewayRejected, InvalidGateway
from pushhub.domain.push.models import BulkNotification, Gateway, GatewayResult
from pushhub.infra.push.gateways.base import GatewayAdapter
from pushhub.services.push_service import PushService, build_push_service
from pushhub.settings import Settings


class FakeAdapter(GatewayAdapter):
    """Records calls; succeeds, fails, hangs or raises on demand."""

    def __init__(self, gateway: Gateway, outcome: str = "ok", delay: float = 0.0):
        super().__init__(client=None)
        self.gateway = gateway
        self.outcome = outcome
        self.delay = delay
        self.calls: list[list[str]] = []

    async def _send(self, tokens, descriptor):
        self.calls.append(list(tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcome == "reject":
            raise GatewayRejected(self.gateway.value, "invalid token")
        if self.outcome == "crash":
            raise RuntimeError("adapter bug")
        return GatewayResult(gateway=self.gateway, success=True, message_id=f"{self.gateway.value}-msg")


@pytest.fixture
def make_service(registry, credentials):
    def build(*adapters, timeout=5.0):
        return PushService(registry, credentials, adapters, gateway_timeout=timeout)

    return build


async def test_fan_out_one_failure_does_not_block_others(make_service, registry, descriptor):
    huawei = FakeAdapter(Gateway.HUAWEI, "reject")
    apns = FakeAdapter(Gateway.APNS)
    service = make_service(huawei, apns)
    await registry.register("u1", "huawei", "d1", "h-tok")
    await registry.register("u1", "apns", "d2", "a-tok")

    report = await service.send_to_user("u1", descriptor)

    assert report.success is True
    assert report.partial is True
    assert report.error == "partial_failure"
    assert report.summary.total_gateways == 2
    assert report.summary.succeeded == 1
    assert report.summary.failed == 1
    by_gateway = {r.gateway: r for r in report.results}
    assert by_gateway[Gateway.HUAWEI].error_code == "gateway_rejected"
    assert by_gateway[Gateway.APNS].message_id == "apns-msg"
    assert huawei.calls == [["h-tok"]]
    assert apns.calls == [["a-tok"]]


async def test_all_gateways_failing(make_service, registry, descriptor):
    service = make_service(FakeAdapter(Gateway.XIAOMI, "reject"), FakeAdapter(Gateway.OPPO, "crash"))
    await registry.register("u1", "xiaomi", "d1", "x")
    await registry.register("u1", "oppo", "d2", "o")

    report = await service.send_to_user("u1", descriptor)

    assert report.success is False
    assert report.partial is False
    assert report.error == "all_gateways_failed"
    assert {r.error_code for r in report.results} == {"gateway_rejected", "unexpected_error"}


async def test_unconfigured_gateway_is_skipped_not_failed(make_service, registry, descriptor):
    service = make_service(FakeAdapter(Gateway.APNS))
    await registry.register("u1", "apns", "d1", "a")
    await registry.register("u1", "vivo", "d2", "v")

    report = await service.send_to_user("u1", descriptor)

    assert report.success is True
    assert report.error is None
    assert report.summary.total_gateways == 1
    assert report.summary.platforms_invoked == [Gateway.APNS]
    assert report.summary.skipped == [Gateway.VIVO]


async def test_only_unconfigured_gateways_invokes_nothing(make_service, registry, descriptor):
    service = make_service(FakeAdapter(Gateway.APNS))
    await registry.register("u1", "huawei", "d1", "h")

    report = await service.send_to_user("u1", descriptor)

    assert report.success is False
    assert report.error == "no_gateways_invoked"
    assert report.summary.skipped == [Gateway.HUAWEI]


async def test_user_without_tokens(make_service, descriptor):
    adapter = FakeAdapter(Gateway.APNS)
    service = make_service(adapter)

    report = await service.send_to_user("ghost", descriptor)

    assert report.success is False
    assert report.error == "no_tokens_found"
    assert report.results == []
    assert adapter.calls == []


async def test_no_adapters_configured(make_service, registry, descriptor):
    service = make_service()
    await registry.register("u1", "apns", "d1", "a")

    report = await service.send_to_user("u1", descriptor)

    assert report.success is False
    assert report.error == "service_unavailable"


async def test_slow_gateway_times_out_while_others_complete(make_service, registry, descriptor):
    slow = FakeAdapter(Gateway.HUAWEI, delay=1.0)
    fast = FakeAdapter(Gateway.APNS)
    service = make_service(slow, fast, timeout=0.05)
    await registry.register("u1", "huawei", "d1", "h")
    await registry.register("u1", "apns", "d2", "a")

    report = await service.send_to_user("u1", descriptor)

    by_gateway = {r.gateway: r for r in report.results}
    assert by_gateway[Gateway.HUAWEI].success is False
    assert by_gateway[Gateway.HUAWEI].error_code == "timeout"
    assert by_gateway[Gateway.APNS].success is True
    assert report.success is True


async def test_gateways_are_invoked_concurrently(make_service, registry, descriptor):
    adapters = [FakeAdapter(gw, delay=0.2) for gw in (Gateway.XIAOMI, Gateway.OPPO, Gateway.VIVO)]
    service = make_service(*adapters)
    for i, gw in enumerate(("xiaomi", "oppo", "vivo")):
        await registry.register("u1", gw, f"d{i}", f"t{i}")

    loop = asyncio.get_running_loop()
    started = loop.time()
    report = await service.send_to_user("u1", descriptor)
    elapsed = loop.time() - started

    assert report.summary.succeeded == 3
    assert elapsed < 0.5


async def test_bulk_continues_past_failing_user(make_service, registry, store, descriptor, monkeypatch):
    service = make_service(FakeAdapter(Gateway.APNS))
    await registry.register("u1", "apns", "d1", "a1")
    await registry.register("u3", "apns", "d3", "a3")

    original = registry.tokens_by_gateway

    async def flaky(user_id):
        if user_id == "u2":
            raise ConnectionError("redis down")
        return await original(user_id)

    monkeypatch.setattr(registry, "tokens_by_gateway", flaky)

    bulk = await service.send_bulk(
        [
            BulkNotification(user_id="u1", notification=descriptor),
            BulkNotification(userId="u2", notification=descriptor),
            BulkNotification(user_id="u3", notification=descriptor),
        ]
    )

    assert [r.user_id for r in bulk.results] == ["u1", "u2", "u3"]
    assert [r.report.success for r in bulk.results] == [True, False, True]
    assert bulk.results[1].report.error == "store_unavailable"
    assert bulk.summary.total == 3
    assert bulk.summary.succeeded == 2
    assert bulk.summary.failed == 1
    assert bulk.success is True


async def test_bulk_separates_store_outages_from_internal_errors(make_service, registry, descriptor, monkeypatch):
    service = make_service(FakeAdapter(Gateway.APNS))

    async def failing(user_id):
        if user_id == "redis-user":
            raise RedisConnectionError("connection reset")
        raise KeyError("bug")

    monkeypatch.setattr(registry, "tokens_by_gateway", failing)

    bulk = await service.send_bulk(
        [
            BulkNotification(user_id="redis-user", notification=descriptor),
            BulkNotification(user_id="buggy-user", notification=descriptor),
        ]
    )

    assert [r.report.error for r in bulk.results] == ["store_unavailable", "internal_error"]
    assert bulk.summary.failed == 2


async def test_bulk_with_no_deliverable_users(make_service, descriptor):
    service = make_service(FakeAdapter(Gateway.APNS))

    bulk = await service.send_bulk([BulkNotification(user_id="nobody", notification=descriptor)])

    assert bulk.success is False
    assert bulk.summary.failed == 1


async def test_registry_operations_pass_through(make_service):
    service = make_service()

    await service.register_device_token("u1", "tok", "oppo", "dev")
    listed = await service.list_device_tokens("u1")
    assert [r.token for r in listed[Gateway.OPPO]] == ["tok"]

    assert await service.remove_device_token("u1", "dev") is True
    assert await service.list_device_tokens("u1") == {}


async def test_test_push_targets_single_token(make_service):
    adapter = FakeAdapter(Gateway.XIAOMI)
    service = make_service(adapter)

    report = await service.test_push("single-token", "xiaomi")

    assert report.success is True
    assert adapter.calls == [["single-token"]]


async def test_test_push_invalid_gateway(make_service):
    with pytest.raises(InvalidGateway):
        await make_service(FakeAdapter(Gateway.XIAOMI)).test_push("tok", "fcm")


async def test_stats_groups_by_platform(make_service):
    service = make_service(FakeAdapter(Gateway.APNS), FakeAdapter(Gateway.HUAWEI), FakeAdapter(Gateway.XIAOMI))

    stats = service.stats()

    assert stats.is_available is True
    assert stats.total_providers == 3
    assert stats.available_providers == [Gateway.XIAOMI, Gateway.HUAWEI, Gateway.APNS]
    assert stats.supported_platforms == {
        "android": [Gateway.XIAOMI, Gateway.HUAWEI],
        "ios": [Gateway.APNS],
    }


async def test_stats_when_nothing_configured(make_service):
    stats = make_service().stats()

    assert stats.is_available is False
    assert stats.total_providers == 0
    assert stats.supported_platforms == {"android": [], "ios": []}


async def test_build_push_service_configures_only_gateways_with_credentials(store):
    settings = Settings(
        xiaomi_app_secret="xs",
        xiaomi_package_name="com.example",
        vivo_app_id="id",
        vivo_app_key="key",
        # vivo_app_secret missing: vivo stays unconfigured
        push_gateway_timeout_seconds=2.5,
    )

    service = build_push_service(settings, store)
    try:
        assert set(service.adapters) == {Gateway.XIAOMI}
        assert service.gateway_timeout == 2.5
        assert service.registry.ttl_seconds == 30 * 86400
    finally:
        await service.aclose()


async def test_build_push_service_registers_credential_exchanges(store):
    settings = Settings(
        huawei_app_id="1",
        huawei_app_secret="s",
        vivo_app_id="id",
        vivo_app_key="key",
        vivo_app_secret="secret",
    )

    service = build_push_service(settings, store)
    try:
        assert service.credentials.buffer_for(Gateway.HUAWEI) == 300
        assert service.credentials.buffer_for(Gateway.VIVO) == 3600
    finally:
        await service.aclose()


async def test_build_push_service_skips_apns_with_unreadable_key(store, tmp_path):
    settings = Settings(
        apns_key_path=str(tmp_path / "missing.p8"),
        apns_key_id="KEY",
        apns_team_id="TEAM",
        apns_bundle_id="com.example",
    )

    service = build_push_service(settings, store)
    try:
        assert service.is_available() is False
    finally:
        await service.aclose()


async def test_aclose_closes_owned_clients(registry, credentials):
    client = httpx.AsyncClient()
    service = PushService(registry, credentials, http_clients=[client])

    await service.aclose()

    assert client.is_closed
