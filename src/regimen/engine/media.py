"""
Media Resolution

Internal Codename: JUDGMENT-DAY
Finds a demonstration URL for every exercise across pluggable media
providers. The result is never empty: when every provider fails the
configured placeholder is returned.

Resolution order:
1. User's preferred provider (if registered and accessible)
2. That provider's declared fallback
3. Remaining providers by priority (premium first when the user has access)
4. Default provider
5. Placeholder URL
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import requests

from ..config import EngineConfig, config_dir, load_yaml
from ..errors import ConfigError, MediaResolutionFailure
from ..models import Exercise

logger = logging.getLogger(__name__)


@dataclass
class MediaProvider:
    """
    A media library.

    Subclasses implement has_media() and get_media_url(). Lower priority
    values are tried first.
    """
    id: str
    name: str
    priority: int
    premium: bool = False
    fallback: Optional[str] = None
    description: str = ''

    def has_media(self, exercise: Exercise) -> bool:
        raise NotImplementedError

    def get_media_url(self, exercise: Exercise) -> Optional[str]:
        raise NotImplementedError

    def locator(self, exercise: Exercise) -> Optional[str]:
        return exercise.media_refs.get(self.id)


@dataclass
class CatalogMediaProvider(MediaProvider):
    """Locators stored on the exercise record, expanded against a base URL."""
    base_url: str = ''
    suffix: str = ''
    host_rewrites: Mapping[str, str] = field(default_factory=dict)

    def has_media(self, exercise: Exercise) -> bool:
        return bool(self.locator(exercise))

    def get_media_url(self, exercise: Exercise) -> Optional[str]:
        locator = self.locator(exercise)
        if not locator:
            return None
        if locator.startswith(('http://', 'https://')):
            url = locator
        else:
            url = f"{self.base_url}{locator}{self.suffix}"
        # Broken CDN hosts
        for old, new in self.host_rewrites.items():
            url = url.replace(old, new)
        return url


@dataclass
class RemoteMediaProvider(MediaProvider):
    """
    Remote library checked with an HTTP HEAD before use.

    Each check is bounded by timeout_seconds; failures raise
    MediaResolutionFailure so the resolver moves on.
    """
    url_template: str = ''
    timeout_seconds: float = 0.3
    session: Optional[requests.Session] = None

    def has_media(self, exercise: Exercise) -> bool:
        return bool(self.locator(exercise))

    def get_media_url(self, exercise: Exercise) -> Optional[str]:
        locator = self.locator(exercise)
        if not locator:
            return None

        url = self.url_template.format(ref=locator, id=exercise.id)
        http = self.session or requests
        try:
            response = http.head(url, timeout=self.timeout_seconds, allow_redirects=True)
        except requests.RequestException as e:
            raise MediaResolutionFailure(self.id, exercise.id, str(e)) from e

        if response.status_code >= 400:
            raise MediaResolutionFailure(self.id, exercise.id, f"HTTP {response.status_code}")
        return url


PROVIDER_TYPES = {
    'catalog': CatalogMediaProvider,
    'remote': RemoteMediaProvider,
}


def _provider_from_dict(data: Dict, timeout_seconds: float) -> MediaProvider:
    provider_id = data.get('id')
    if not provider_id:
        raise ConfigError(f"Media provider without id: {data!r}")

    kind = data.get('type', 'catalog')
    if kind not in PROVIDER_TYPES:
        raise ConfigError(f"Media provider '{provider_id}': unknown type {kind!r}")

    common = dict(
        id=str(provider_id),
        name=data.get('name', provider_id),
        priority=int(data.get('priority', 100)),
        premium=bool(data.get('premium', False)),
        fallback=data.get('fallback'),
        description=data.get('description', ''),
    )
    if kind == 'remote':
        if not data.get('url_template'):
            raise ConfigError(f"Remote media provider '{provider_id}' needs url_template")
        return RemoteMediaProvider(
            **common,
            url_template=data['url_template'],
            timeout_seconds=float(data.get('timeout_seconds', timeout_seconds)),
        )
    return CatalogMediaProvider(
        **common,
        base_url=data.get('base_url', ''),
        suffix=data.get('suffix', ''),
        host_rewrites=dict(data.get('host_rewrites') or {}),
    )


class MediaResolver:
    """
    Resolves demonstration media through the provider chain.

    The provider tuple is fixed at construction and sorted by priority.
    """

    def __init__(
        self,
        providers: Sequence[MediaProvider],
        default_provider: str,
        placeholder_url: str,
        max_workers: int = 8
    ):
        """
        Initialize media resolver.

        Args:
            providers: Registered providers
            default_provider: Provider id tried after the priority pass
            placeholder_url: Terminal fallback (must be non-empty)
            max_workers: Thread pool size for resolve_many
        """
        self.providers: Tuple[MediaProvider, ...] = tuple(sorted(providers, key=lambda p: p.priority))
        # Provider ids are matched case-insensitively
        self._by_id = {p.id.lower(): p for p in self.providers}
        self.default_provider = default_provider
        self.placeholder_url = placeholder_url
        self.max_workers = max_workers

        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))

    @classmethod
    def from_yaml(
        cls,
        path: Optional[Path] = None,
        config: Optional[EngineConfig] = None,
        session: Optional[requests.Session] = None
    ) -> 'MediaResolver':
        """
        Build the resolver from config/media_providers.yaml.

        Args:
            path: YAML file (default: config dir)
            config: EngineConfig for placeholder, timeouts and pool size
            session: Shared HTTP session for remote providers

        Returns:
            MediaResolver
        """
        config = config or EngineConfig()
        if path is None:
            path = config_dir() / "media_providers.yaml"
        data = load_yaml(path)

        providers = [_provider_from_dict(p, config.lookup_timeout_seconds) for p in data.get('providers') or []]
        for p in providers:
            if isinstance(p, RemoteMediaProvider):
                p.session = session

        resolver = cls(
            providers,
            default_provider=data.get('default_provider', 'exercisedb'),
            placeholder_url=data.get('placeholder_url', config.placeholder_url),
            max_workers=config.max_workers,
        )
        logger.info(f"Loaded {len(providers)} media providers from {path}")
        return resolver

    def validate(self) -> List[str]:
        """
        Validate the provider table.

        Returns:
            List of error messages. Empty list if valid.
        """
        errors = []
        if len(self._by_id) != len(self.providers):
            errors.append("Duplicate media provider ids")
        if self.get(self.default_provider) is None:
            errors.append(f"Default media provider '{self.default_provider}' is not registered")
        for p in self.providers:
            if p.fallback and self.get(p.fallback) is None:
                errors.append(f"Media provider '{p.id}': unknown fallback '{p.fallback}'")
        if not self.placeholder_url:
            errors.append("Media placeholder URL must not be empty")
        return errors

    def get(self, provider_id: str) -> Optional[MediaProvider]:
        return self._by_id.get(str(provider_id).lower())

    def chain(self, preference: Optional[str] = None, premium: bool = False) -> List[MediaProvider]:
        """
        Ordered providers to try for a request.

        Args:
            preference: Preferred provider id (or None / 'auto')
            premium: Whether the user has premium access

        Returns:
            Providers in the order they will be tried (no duplicates)
        """
        order: List[MediaProvider] = []

        def add(provider: Optional[MediaProvider]):
            if provider is None or provider in order:
                return
            if provider.premium and not premium:
                return
            order.append(provider)

        if preference and preference != 'auto':
            preferred = self.get(preference)
            if preferred is None:
                logger.debug(f"Unknown media preference '{preference}'")
            elif preferred.premium and not premium:
                logger.warning(f"Premium media library '{preference}' requested without access")
            else:
                add(preferred)
                if preferred.fallback:
                    add(self.get(preferred.fallback))

        if premium:
            for p in self.providers:
                if p.premium:
                    add(p)
        for p in self.providers:
            if not p.premium:
                add(p)

        # Default is always reachable, even if premium-flagged
        default = self.get(self.default_provider)
        if default not in order:
            order.append(default)

        return order

    def resolve(self, exercise: Exercise, preference: Optional[str] = None, premium: bool = False) -> str:
        """
        Resolve a media URL for one exercise.

        Args:
            exercise: Exercise to resolve
            preference: Preferred provider id
            premium: Whether the user has premium access

        Returns:
            Non-empty URL (placeholder when nothing resolves)
        """
        for provider in self.chain(preference, premium):
            if not provider.has_media(exercise):
                continue
            try:
                url = provider.get_media_url(exercise)
            except MediaResolutionFailure as e:
                logger.warning(str(e))
                continue
            if url:
                logger.debug(f"Using {provider.name} for exercise {exercise.id}")
                return url

        logger.info(f"No media available for exercise {exercise.id}, using placeholder")
        return self.placeholder_url

    def resolve_many(
        self,
        exercises: Iterable[Exercise],
        preference: Optional[str] = None,
        premium: bool = False,
        deadline_seconds: Optional[float] = None
    ) -> Dict[str, str]:
        """
        Resolve media for many exercises in parallel.

        Lookups still running when the deadline passes get the placeholder.

        Args:
            exercises: Exercises to resolve (duplicates resolved once)
            preference: Preferred provider id
            premium: Whether the user has premium access
            deadline_seconds: Overall time allowed (None = wait for all)

        Returns:
            Mapping of exercise id to URL, one entry per exercise
        """
        unique: Dict[str, Exercise] = {}
        for ex in exercises:
            unique.setdefault(ex.id, ex)
        if not unique:
            return {}

        start = time.monotonic()
        urls: Dict[str, str] = {}

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            future_to_id = {
                executor.submit(self.resolve, ex, preference, premium): ex_id
                for ex_id, ex in unique.items()
            }
            remaining = None
            if deadline_seconds is not None:
                remaining = max(0.0, deadline_seconds - (time.monotonic() - start))
            done, not_done = wait(future_to_id, timeout=remaining)

            for future in done:
                ex_id = future_to_id[future]
                try:
                    urls[ex_id] = future.result()
                except Exception as e:
                    logger.error(f"Media lookup for {ex_id} failed: {e}")
                    urls[ex_id] = self.placeholder_url

            if not_done:
                logger.warning(f"Media deadline reached, {len(not_done)} lookups use the placeholder")
                for future in not_done:
                    urls[future_to_id[future]] = self.placeholder_url
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return urls

    def describe(self, premium: bool = False) -> List[Dict]:
        """Provider table for display."""
        return [
            {
                'id': p.id,
                'name': p.name,
                'priority': p.priority,
                'premium': p.premium,
                'available': not p.premium or premium,
                'default': p is self.get(self.default_provider),
                'description': p.description,
            }
            for p in self.providers
        ]
