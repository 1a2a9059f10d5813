"""File-based key-value store and the per-city weather cache built on it."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..models.weather import CityWeatherBundle

logger = logging.getLogger(__name__)

WEATHER_CACHE_PREFIX = "WeatherApp_Cache"


class Cache:
    """JSON file store, one file per key.

    The original key is stored alongside the value so entries can be listed
    back by prefix even though file names are sanitized.
    """

    def __init__(self, cache_dir: Path | str = ".cache"):
        self.cache_dir = Path(cache_dir)
        self._enabled = True

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            # Test write permission
            test_file = self.cache_dir / ".test"
            test_file.touch()
            test_file.unlink()
        except (PermissionError, OSError) as e:
            logger.warning(f"Cache disabled - cannot write to {cache_dir}: {e}")
            self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _get_path(self, key: str) -> Path:
        """Get cache file path for a key."""
        safe_key = "".join(c if c.isalnum() else "_" for c in key)
        return self.cache_dir / f"{safe_key}.json"

    def _read(self, path: Path) -> dict | None:
        try:
            with open(path, encoding="utf-8") as f:
                entry = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read cache file {path.name}: {e}")
            return None
        if not isinstance(entry, dict) or "key" not in entry or "value" not in entry:
            logger.warning(f"Ignoring malformed cache file {path.name}")
            return None
        return entry

    def get(self, key: str) -> Any | None:
        """Get the stored value for a key."""
        if not self._enabled:
            return None

        path = self._get_path(key)
        if not path.exists():
            return None

        entry = self._read(path)
        if entry is None or entry["key"] != key:
            return None
        return entry["value"]

    def get_all(self, prefix: str = "") -> dict[str, Any]:
        """Get every stored value whose key starts with prefix."""
        if not self._enabled:
            return {}

        items: dict[str, Any] = {}
        for path in sorted(self.cache_dir.glob("*.json")):
            entry = self._read(path)
            if entry is None:
                continue
            key = entry["key"]
            if isinstance(key, str) and key.startswith(prefix):
                items[key] = entry["value"]
        return items

    def set(self, key: str, value: Any) -> None:
        """Store a value, overwriting any previous one."""
        if not self._enabled:
            return

        path = self._get_path(key)
        tmp_path = path.with_suffix(".tmp")

        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"key": key, "value": value}, f, ensure_ascii=False)
            tmp_path.replace(path)

            logger.debug(f"Cached {key}")

        except (TypeError, OSError) as e:
            logger.warning(f"Failed to cache {key}: {e}")
            tmp_path.unlink(missing_ok=True)

    def clear(self, key: str) -> None:
        """Clear a specific cache entry."""
        self._get_path(key).unlink(missing_ok=True)


class WeatherCache:
    """Durable store of the last good bundle per city.

    Entries never expire; a city's bundle is replaced only by a newer
    successful fetch or removed explicitly.
    """

    def __init__(self, store: Cache, prefix: str = WEATHER_CACHE_PREFIX):
        self.store = store
        self.prefix = prefix

    def _key(self, city: str) -> str:
        return f"{self.prefix}_{city}"

    def _decode(self, key: str, value: Any) -> CityWeatherBundle | None:
        try:
            bundle = CityWeatherBundle.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None
        if not bundle.is_valid:
            logger.warning(f"Discarding incomplete cache entry {key}")
            return None
        return bundle

    def get(self, city: str) -> CityWeatherBundle | None:
        key = self._key(city)
        value = self.store.get(key)
        if value is None:
            return None
        return self._decode(key, value)

    def set(self, city: str, bundle: CityWeatherBundle) -> bool:
        """Persist a bundle; incomplete bundles are refused."""
        if not bundle.is_valid:
            logger.warning(f"Refusing to cache incomplete bundle for {city}")
            return False
        self.store.set(self._key(city), bundle.model_dump(mode="json"))
        return True

    def get_all(self) -> dict[str, CityWeatherBundle]:
        """All cached bundles keyed by city name."""
        head = f"{self.prefix}_"
        bundles: dict[str, CityWeatherBundle] = {}
        for key, value in self.store.get_all(head).items():
            bundle = self._decode(key, value)
            if bundle is not None:
                bundles[key[len(head):]] = bundle
        return bundles

    def remove(self, city: str) -> None:
        self.store.clear(self._key(city))
