import os
import json
from datetime import date, datetime
import logging
from typing import Any, Optional
import hashlib

logger = logging.getLogger(__name__)


class CacheHelper:
    """Day-scoped JSON file cache: every entry carries the date it was written for."""

    DEFAULT_CACHE_DIR = "~/.namazio/cache"

    def __init__(self, cache_dir: Optional[str] = None, component_name: str = ""):
        """Initialize cache helper with specific cache directory
        Args:
            cache_dir: Base cache directory from config, if None uses DEFAULT_CACHE_DIR
            component_name: Component specific subdirectory
        """
        base_dir = os.path.expanduser(cache_dir or self.DEFAULT_CACHE_DIR)
        self.cache_dir = os.path.join(base_dir, component_name) if component_name else base_dir
        os.makedirs(self.cache_dir, exist_ok=True)

    def _get_cache_file(self, key: str) -> str:
        """Generate cache filename from key"""
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return os.path.join(self.cache_dir, f"{key_hash}.json")

    def get_cached_content(self, key: str, for_date: Optional[date] = None) -> Optional[Any]:
        """Get cached content if it exists and was written for for_date (default: today).
        Entries for any other date are deleted on read."""
        for_date = for_date or datetime.now().date()
        cache_file = self._get_cache_file(key)
        if not os.path.exists(cache_file):
            return None
        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                cached = json.load(f)
            cache_date = datetime.strptime(cached['date'], '%Y-%m-%d').date()
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error reading cache {cache_file}: {e}")
            return None

        if cache_date != for_date:
            logger.debug(f"Discarding cache entry from {cache_date} (wanted {for_date})")
            self._remove(cache_file)
            return None
        return cached.get('content')

    def save_to_cache(self, key: str, content: Any, for_date: Optional[date] = None) -> None:
        """Save JSON-serializable content to cache tagged with for_date (default: today)"""
        for_date = for_date or datetime.now().date()
        cache_data = {
            'date': for_date.strftime('%Y-%m-%d'),
            'content': content
        }
        cache_file = self._get_cache_file(key)
        try:
            with open(cache_file, 'w', encoding='utf-8') as f:
                json.dump(cache_data, f, ensure_ascii=False)
        except (OSError, TypeError) as e:
            logger.error(f"Error saving to cache: {e}")

    def _remove(self, cache_file: str) -> None:
        try:
            os.remove(cache_file)
        except OSError as e:
            logger.debug(f"Could not remove stale cache file {cache_file}: {e}")
