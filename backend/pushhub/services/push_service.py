"""
Push delivery service: token registry operations plus fan-out to gateways.

One PushService is built from settings at startup and injected into callers.
`send_to_user` looks up the user's tokens, invokes every configured gateway
that has tokens concurrently, and aggregates the per-gateway results:

- gateways with tokens but no configured adapter are skipped, not failed
- each adapter call is bounded by `gateway_timeout`; a timeout is a failed result
- the report is successful when any invoked gateway succeeded

Adapters never raise, so a report is always returned. Registry store errors
propagate to the caller.
"""
import asyncio
import logging
from typing import Iterable, Optional

import httpx
from redis.exceptions import RedisError

from pushhub.domain.common.errors import ServiceUnavailable
from pushhub.domain.common.types import preview, utc_now
from pushhub.domain.push.models import (
    BulkDeliveryReport,
    BulkNotification,
    BulkSummary,
    DeliveryReport,
    DeviceToken,
    Gateway,
    GatewayResult,
    NotificationDescriptor,
    ServiceStats,
    UserDeliveryReport,
)
from pushhub.domain.push.repositories import KeyValueStore
from pushhub.infra.push.credentials import CredentialCache
from pushhub.infra.push.gateways.apns import ApnsAdapter
from pushhub.infra.push.gateways.base import GatewayAdapter
from pushhub.infra.push.gateways.huawei import HuaweiAdapter
from pushhub.infra.push.gateways.oppo import OppoAdapter
from pushhub.infra.push.gateways.vivo import VivoAdapter
from pushhub.infra.push.gateways.xiaomi import XiaomiAdapter
from pushhub.infra.push.registry import DeviceTokenRegistry
from pushhub.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_TIMEOUT = 5.0


class PushService:
    """Dispatcher and aggregator over a set of gateway adapters."""

    def __init__(
        self,
        registry: DeviceTokenRegistry,
        credentials: CredentialCache,
        adapters: Iterable[GatewayAdapter] = (),
        gateway_timeout: float = DEFAULT_GATEWAY_TIMEOUT,
        http_clients: Iterable[httpx.AsyncClient] = (),
    ):
        self.registry = registry
        self.credentials = credentials
        self.gateway_timeout = gateway_timeout
        self.adapters: dict[Gateway, GatewayAdapter] = {}
        self._http_clients = list(http_clients)
        for adapter in adapters:
            self.add_adapter(adapter)

    def add_adapter(self, adapter: GatewayAdapter) -> None:
        """Configure a gateway; registers its credential exchange with the cache."""
        self.adapters[adapter.gateway] = adapter
        if adapter.uses_credential_cache:
            self.credentials.register(
                adapter.gateway,
                adapter.acquire_credential,
                buffer_seconds=adapter.credential_buffer_seconds,
            )
        logger.info("%s push gateway configured", adapter.gateway.value)

    def is_available(self) -> bool:
        return bool(self.adapters)

    # --- token registry ---

    async def register_device_token(self, user_id: str, token: str, gateway: "str | Gateway", device_id: str) -> bool:
        return await self.registry.register(user_id, gateway, device_id, token)

    async def remove_device_token(self, user_id: str, device_id: str, gateway: "Optional[str | Gateway]" = None) -> bool:
        return await self.registry.remove(user_id, device_id, gateway)

    async def list_device_tokens(self, user_id: str) -> dict[Gateway, list[DeviceToken]]:
        return await self.registry.list_tokens(user_id)

    # --- delivery ---

    async def send_to_user(self, user_id: str, descriptor: NotificationDescriptor) -> DeliveryReport:
        """Fan a notification out to every registered device of a user."""
        tokens = await self.registry.tokens_by_gateway(user_id)
        if not tokens:
            logger.warning("No device tokens found for user %s", user_id)
            return DeliveryReport.empty("no_tokens_found")
        report = await self.send_to_tokens(tokens, descriptor)
        logger.info(
            "Push to user %s: success=%s invoked=%d failed=%d",
            user_id,
            report.success,
            report.summary.total_gateways,
            report.summary.failed,
        )
        return report

    async def send_to_tokens(
        self, tokens: dict[Gateway, list[str]], descriptor: NotificationDescriptor
    ) -> DeliveryReport:
        """Invoke the configured adapters for each non-empty token group concurrently."""
        if not self.is_available():
            logger.error("Push notification failed: %s", ServiceUnavailable().message)
            return DeliveryReport.empty(ServiceUnavailable.code)

        targets: list[tuple[GatewayAdapter, list[str]]] = []
        skipped: list[Gateway] = []
        for gateway, gateway_tokens in tokens.items():
            if not gateway_tokens:
                continue
            adapter = self.adapters.get(gateway)
            if adapter is None:
                skipped.append(gateway)
                continue
            targets.append((adapter, gateway_tokens))

        if skipped:
            logger.debug("Skipping unconfigured gateways: %s", [g.value for g in skipped])

        results = await asyncio.gather(
            *(self._invoke(adapter, gateway_tokens, descriptor) for adapter, gateway_tokens in targets)
        )
        return DeliveryReport.aggregate(list(results), skipped=skipped)

    async def _invoke(
        self, adapter: GatewayAdapter, tokens: list[str], descriptor: NotificationDescriptor
    ) -> GatewayResult:
        try:
            return await asyncio.wait_for(adapter.send(tokens, descriptor), timeout=self.gateway_timeout)
        except asyncio.TimeoutError:
            logger.error("%s push timed out after %ss", adapter.gateway.value, self.gateway_timeout)
            return GatewayResult.failure(
                adapter.gateway, f"timed out after {self.gateway_timeout}s", "timeout"
            )

    async def send_bulk(self, notifications: Iterable[BulkNotification]) -> BulkDeliveryReport:
        """Send to each user in turn; one user's failure never stops the rest."""
        results: list[UserDeliveryReport] = []
        for item in notifications:
            try:
                report = await self.send_to_user(item.user_id, item.notification)
            except (RedisError, ConnectionError) as e:
                logger.error("Bulk push to user %s failed, store unavailable: %s", item.user_id, e)
                report = DeliveryReport.empty("store_unavailable")
            except Exception:
                logger.exception("Bulk push to user %s failed unexpectedly", item.user_id)
                report = DeliveryReport.empty("internal_error")
            results.append(UserDeliveryReport(user_id=item.user_id, report=report))

        succeeded = sum(1 for r in results if r.report.success)
        logger.info(
            "Bulk notifications sent: total=%d success=%d failed=%d",
            len(results),
            succeeded,
            len(results) - succeeded,
        )
        return BulkDeliveryReport(
            success=succeeded > 0,
            results=results,
            summary=BulkSummary(total=len(results), succeeded=succeeded, failed=len(results) - succeeded),
        )

    async def test_push(self, token: str, gateway: "str | Gateway") -> DeliveryReport:
        """Send a fixed test notification to a single device token."""
        gw = Gateway.parse(gateway)
        descriptor = NotificationDescriptor(
            title="PushHub Test",
            body="This is a test notification from PushHub",
            data={"test": True, "timestamp": utc_now().isoformat()},
        )
        report = await self.send_to_tokens({gw: [token]}, descriptor)
        logger.info("Test push to %s token %s: success=%s", gw.value, preview(token), report.success)
        return report

    def stats(self) -> ServiceStats:
        available = [gw for gw in Gateway if gw in self.adapters]
        return ServiceStats(
            is_available=self.is_available(),
            available_providers=available,
            total_providers=len(available),
            supported_platforms={
                "android": [gw for gw in available if gw.platform == "android"],
                "ios": [gw for gw in available if gw.platform == "ios"],
            },
        )

    async def aclose(self) -> None:
        """Close the HTTP clients owned by this service."""
        for client in self._http_clients:
            await client.aclose()


def build_push_service(settings: Settings, store: KeyValueStore) -> PushService:
    """Build the service from settings. A gateway is configured only when its credentials are set."""
    timeout = httpx.Timeout(settings.push_http_timeout_seconds)
    client = httpx.AsyncClient(timeout=timeout)
    clients = [client]
    credentials = CredentialCache(store, buffer_seconds=settings.push_credential_buffer_seconds)
    adapters: list[GatewayAdapter] = []

    if settings.xiaomi_app_secret and settings.xiaomi_package_name:
        adapters.append(
            XiaomiAdapter(
                client,
                app_secret=settings.xiaomi_app_secret,
                package_name=settings.xiaomi_package_name,
                base_url=settings.xiaomi_base_url,
            )
        )
    if settings.huawei_app_id and settings.huawei_app_secret:
        adapters.append(
            HuaweiAdapter(
                client,
                credentials,
                app_id=settings.huawei_app_id,
                app_secret=settings.huawei_app_secret,
                base_url=settings.huawei_base_url,
                oauth_url=settings.huawei_oauth_url,
            )
        )
    if settings.oppo_app_key and settings.oppo_master_secret:
        adapters.append(
            OppoAdapter(
                client,
                credentials,
                app_key=settings.oppo_app_key,
                master_secret=settings.oppo_master_secret,
                base_url=settings.oppo_base_url,
            )
        )
    if settings.vivo_app_id and settings.vivo_app_key and settings.vivo_app_secret:
        adapters.append(
            VivoAdapter(
                client,
                credentials,
                app_id=settings.vivo_app_id,
                app_key=settings.vivo_app_key,
                app_secret=settings.vivo_app_secret,
                base_url=settings.vivo_base_url,
            )
        )
    if (settings.apns_private_key or settings.apns_key_path) and settings.apns_key_id and settings.apns_team_id:
        try:
            signing_key = settings.apns_signing_key
        except OSError as e:
            logger.error("Failed to initialize APNs: %s", e)
        else:
            apns_client = httpx.AsyncClient(http2=True, timeout=timeout)
            clients.append(apns_client)
            adapters.append(
                ApnsAdapter(
                    apns_client,
                    credentials,
                    signing_key=signing_key,
                    key_id=settings.apns_key_id,
                    team_id=settings.apns_team_id,
                    bundle_id=settings.apns_bundle_id,
                    base_url=settings.apns_base_url,
                )
            )

    service = PushService(
        DeviceTokenRegistry(store, ttl_days=settings.push_device_token_ttl_days),
        credentials,
        adapters,
        gateway_timeout=settings.push_gateway_timeout_seconds,
        http_clients=clients,
    )
    if not service.is_available():
        logger.warning("No push gateway configured; push delivery disabled")
    return service
