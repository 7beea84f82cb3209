"""Readiness checks: config, packages, redis, push gateways."""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]


def check_config() -> CheckResult:
    """Load settings and read app_name / redis_url."""
    try:
        from pushhub.settings import get_settings
        s = get_settings()
        _ = s.app_name
        _ = s.redis_url
        return True, "ok"
    except Exception as e:
        return False, str(e)


def check_packages() -> CheckResult:
    """Import critical modules: uvicorn, redis, httpx, jwt, pushhub.main."""
    missing = []
    for name in ("uvicorn", "redis", "httpx", "jwt", "h2"):
        try:
            __import__(name)
        except ImportError:
            missing.append(name)
    try:
        import pushhub.main  # noqa: F401
    except ImportError as e:
        missing.append(f"pushhub.main ({e})")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def _check_redis_async(redis_url: str) -> CheckResult:
    """PING the configured Redis."""
    from pushhub.infra.cache.redis_store import RedisStore
    store = RedisStore(redis_url)
    try:
        await store.ping()
        return True, "ok"
    except Exception as e:
        return False, str(e)
    finally:
        await store.disconnect()


def check_redis() -> CheckResult:
    """Check Redis connectivity using settings.redis_url."""
    try:
        from pushhub.settings import get_settings
        return asyncio.run(_check_redis_async(get_settings().redis_url))
    except Exception as e:
        return False, str(e)


def check_gateways(push_service=None) -> CheckResult:
    """At least one push gateway configured. Uses the running service when given, else settings."""
    try:
        if push_service is None:
            from pushhub.services.push_service import build_push_service
            from pushhub.settings import get_settings
            push_service = build_push_service(get_settings(), store=None)
            asyncio.run(push_service.aclose())
        stats = push_service.stats()
        if not stats.is_available:
            return False, "no push gateway configured"
        return True, "ok: " + ", ".join(gw.value for gw in stats.available_providers)
    except Exception as e:
        return False, str(e)


def run_all_checks() -> ChecksDict:
    """Run all readiness checks (sync). Returns dict of check_name -> (passed, message)."""
    return {
        "config": check_config(),
        "packages": check_packages(),
        "redis": check_redis(),
        "gateways": check_gateways(),
    }


async def run_all_checks_async(push_service=None) -> ChecksDict:
    """Run all readiness checks (async). Use from async context (e.g. GET /ready) to avoid nested event loop."""
    from pushhub.settings import get_settings
    redis_result = await _check_redis_async(get_settings().redis_url)
    return {
        "config": check_config(),
        "packages": check_packages(),
        "redis": redis_result,
        "gateways": check_gateways(push_service) if push_service is not None else (False, "push service not started"),
    }


def is_ready(checks: Optional[ChecksDict] = None) -> tuple[bool, dict[str, str]]:
    """
    True if all required checks pass. Gateways are optional: an unconfigured
    deployment still serves registrations.
    Returns (ready: bool, checks_summary: dict of name -> "ok" | error message).
    """
    if checks is None:
        checks = run_all_checks()
    required = {"config", "packages", "redis"}
    summary: dict[str, str] = {name: msg for name, (_, msg) in checks.items()}
    all_required = all(checks[n][0] for n in required if n in checks)
    return all_required, summary
