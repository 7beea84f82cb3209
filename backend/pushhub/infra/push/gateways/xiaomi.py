"""Xiaomi Push (Android) adapter."""
from pushhub.domain.common.errors import GatewayRejected
from pushhub.domain.push.formatter import format_xiaomi
from pushhub.domain.push.models import Gateway, GatewayResult, NotificationDescriptor
from pushhub.infra.push.gateways.base import GatewayAdapter


class XiaomiAdapter(GatewayAdapter):
    """Authenticates with the static app secret; no credential exchange."""

    gateway = Gateway.XIAOMI

    def __init__(self, client, app_secret: str, package_name: str, base_url: str):
        super().__init__(client)
        self.app_secret = app_secret
        self.package_name = package_name
        self.base_url = base_url.rstrip("/")

    async def _send(self, tokens: list[str], descriptor: NotificationDescriptor) -> GatewayResult:
        form = format_xiaomi(descriptor, tokens)
        form["restricted_package_name"] = self.package_name
        body = await self._post_json(
            f"{self.base_url}/v3/message/regid",
            data=form,
            headers={"Authorization": f"key={self.app_secret}"},
        )
        # {"result": "ok", "code": 0, "data": {"id": "..."}}
        if body.get("code", 0) != 0:
            raise GatewayRejected(self.gateway.value, body.get("description") or body.get("reason") or str(body))
        return GatewayResult(
            gateway=self.gateway,
            success=True,
            message_id=(body.get("data") or {}).get("id"),
            response=body,
        )
