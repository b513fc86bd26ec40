"""Provider selection and management service"""
import random
import threading
from dataclasses import fields
from typing import Any, Optional, Union

from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.metrics import PROVIDER_SELECTIONS
from app.models.config import AppConfig
from app.models.provider import Provider, ProxyStrategy
from app.utils.parsing import try_parse_json

logger = get_logger()

REQUIRED_PROVIDER_FIELDS = ('id', 'base_url', 'token')


class ProviderRegistry:
    """Ordered set of providers keyed by id"""

    def __init__(self):
        self._providers: list[Provider] = []

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self):
        return iter(self._providers)

    def get(self, provider_id: str) -> Optional[Provider]:
        for provider in self._providers:
            if provider.id == provider_id:
                return provider
        return None

    def at(self, index: int) -> Provider:
        return self._providers[index]

    def add(self, provider: Provider) -> None:
        self._providers.append(provider)

    def update(self, existing: Provider, changes: dict[str, Any]) -> None:
        """Overwrite fields of an existing provider in place; the id never changes"""
        for name, value in changes.items():
            if name != 'id':
                setattr(existing, name, value)

    def remove(self, provider_id: str) -> bool:
        for index, provider in enumerate(self._providers):
            if provider.id == provider_id:
                del self._providers[index]
                return True
        return False

    def all(self) -> list[Provider]:
        return list(self._providers)


class UsageTracker:
    """Per-provider request counters plus the round-robin cursor"""

    def __init__(self):
        self._counts: dict[str, int] = {}
        self.cursor = 0

    def track(self, provider_id: str) -> None:
        self._counts.setdefault(provider_id, 0)

    def forget(self, provider_id: str) -> None:
        self._counts.pop(provider_id, None)

    def increment(self, provider_id: str) -> None:
        self._counts[provider_id] = self._counts.get(provider_id, 0) + 1

    def count(self, provider_id: str) -> int:
        return self._counts.get(provider_id, 0)

    def advance_cursor(self) -> int:
        """Return the current cursor value and move it forward by one"""
        current = self.cursor
        self.cursor += 1
        return current

    def reset(self) -> None:
        for provider_id in self._counts:
            self._counts[provider_id] = 0
        self.cursor = 0

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)


class LoadBalancer:
    """Chooses a provider per request under the active strategy

    Selection and the usage increment happen under one lock and never await,
    so concurrent requests see exact counts and cursor positions.
    """

    def __init__(
        self,
        providers: Optional[list[Provider]] = None,
        strategy: Union[ProxyStrategy, str] = ProxyStrategy.ROUND_ROBIN,
    ):
        self._registry = ProviderRegistry()
        self._usage = UsageTracker()
        self._lock = threading.Lock()
        self._strategy = ProxyStrategy.ROUND_ROBIN
        self.set_strategy(strategy)
        for provider in providers or []:
            self.register(provider)

    @property
    def strategy(self) -> ProxyStrategy:
        return self._strategy

    @property
    def providers(self) -> list[Provider]:
        return self._registry.all()

    def select(self) -> Optional[Provider]:
        """Pick the next provider and count the request against it"""
        with self._lock:
            count = len(self._registry)
            if count == 0:
                return None

            if count == 1:
                provider = self._registry.at(0)
            elif self._strategy == ProxyStrategy.RANDOM:
                provider = random.choice(self._registry.all())
            elif self._strategy == ProxyStrategy.LEAST_USED:
                provider = self._least_used()
            else:
                provider = self._registry.at(self._usage.advance_cursor() % count)

            self._usage.increment(provider.id)

        PROVIDER_SELECTIONS.labels(provider=provider.id, strategy=self._strategy.value).inc()
        logger.debug(f"Selected provider {provider.id} ({self._strategy.value})")
        return provider

    def _least_used(self) -> Provider:
        least = self._registry.at(0)
        for provider in self._registry:
            if self._usage.count(provider.id) < self._usage.count(least.id):
                least = provider
        return least

    def register(self, provider: Union[Provider, dict[str, Any]]) -> Provider:
        """Add a provider, or merge fields onto the one with the same id"""
        changes = _provider_fields(provider)
        missing = [name for name in REQUIRED_PROVIDER_FIELDS if not changes.get(name)]
        if missing:
            raise ValidationError(f"Provider must have id, base_url and token (missing: {', '.join(missing)})")

        with self._lock:
            existing = self._registry.get(changes['id'])
            if existing is not None:
                self._registry.update(existing, changes)
                return existing

            new_provider = Provider(**changes)
            self._registry.add(new_provider)
            self._usage.track(new_provider.id)
            return new_provider

    def deregister(self, provider_id: str) -> None:
        """Remove a provider and its counter; unknown ids are ignored"""
        with self._lock:
            if self._registry.remove(provider_id):
                self._usage.forget(provider_id)

    def set_strategy(self, strategy: Union[ProxyStrategy, str]) -> None:
        try:
            self._strategy = ProxyStrategy(strategy)
        except ValueError:
            raise ValidationError(f"Invalid strategy: {strategy}") from None

    def reset_usage(self) -> None:
        with self._lock:
            self._usage.reset()

    def usage_snapshot(self) -> dict[str, int]:
        with self._lock:
            return self._usage.snapshot()

    def stats(self) -> dict[str, Any]:
        """Read-only report of the active strategy and per-provider usage"""
        with self._lock:
            return {
                'strategy': self._strategy.value,
                'providers': [
                    {
                        'id': p.id,
                        'base_url': p.base_url,
                        'usage': self._usage.count(p.id),
                    }
                    for p in self._registry
                ],
            }


_PROVIDER_FIELD_NAMES = tuple(f.name for f in fields(Provider))


def _provider_fields(provider: Union[Provider, dict[str, Any]]) -> dict[str, Any]:
    if isinstance(provider, Provider):
        return {name: getattr(provider, name) for name in _PROVIDER_FIELD_NAMES}
    return {k: v for k, v in provider.items() if k in _PROVIDER_FIELD_NAMES}


def parse_additional_providers(raw: Optional[str]) -> list[dict[str, Any]]:
    """Decode the JSON array of extra providers, skipping incomplete entries"""
    if not raw:
        return []

    parsed = try_parse_json(raw)
    if not isinstance(parsed, list):
        logger.error("Error parsing additional providers: expected a JSON array")
        return []

    entries = []
    for entry in parsed:
        if isinstance(entry, dict) and 'baseUrl' in entry:
            entry = {**entry, 'base_url': entry.get('base_url') or entry['baseUrl']}
        if isinstance(entry, dict) and all(entry.get(name) for name in REQUIRED_PROVIDER_FIELDS):
            entries.append(entry)
        else:
            logger.warning(f"Skipping malformed provider entry: {_redact(entry)}")
    return entries


def _redact(entry: Any) -> Any:
    if isinstance(entry, dict) and 'token' in entry:
        return {**entry, 'token': '***'}
    return entry


def fallback_provider(config: AppConfig) -> Provider:
    """Provider used by passthrough forwarding when the pool is empty"""
    default = config.default_provider
    return Provider(id=default.id, base_url=default.base_url, token=default.token, weight=default.weight)


def build_load_balancer(config: AppConfig) -> LoadBalancer:
    """Create the process load balancer from configuration

    Raises:
        ValidationError: if the configured strategy is unknown
    """
    load_balancer = LoadBalancer(strategy=config.strategy)

    default = config.default_provider
    if default.token:
        load_balancer.register(default.model_dump())
    else:
        logger.warning(f"Default provider {default.id} has no token configured, not registering it")

    for entry in parse_additional_providers(config.additional_providers):
        load_balancer.register(entry)

    return load_balancer
