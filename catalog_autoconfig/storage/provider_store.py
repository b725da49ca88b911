"""File-based persistence for provider configurations.

Configs are stored one JSON file per slug:

    <base_dir>/custom/<slug>.json    user-generated, writable
    <base_dir>/builtin/<slug>.json   shipped with the application, read-only

Example:
    >>> store = ProviderStore("~/.catalog-autoconfig/providers")
    >>> store.save(config)
    >>> store.get("example").name
    'Example'
    >>> [c.slug for c in store.list()]
    ['example']
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from catalog_autoconfig.types.errors import StorageError
from catalog_autoconfig.types.provider_config import DynamicProviderConfig

logger = logging.getLogger(__name__)

CUSTOM_DIR = "custom"
BUILTIN_DIR = "builtin"


def _check_slug(slug: str) -> str:
    if not slug or not slug.strip():
        raise ValueError("slug cannot be empty")
    if ".." in slug or "/" in slug or "\\" in slug:
        raise ValueError(f"Path traversal detected in slug: {slug}")
    return slug.strip()


class ProviderStore:
    """Saves and loads DynamicProviderConfig JSON files.

    Attributes:
        base_dir: Root directory of the store
        custom_dir: Directory for user-generated configs
        builtin_dir: Directory for shipped configs
    """

    def __init__(self, base_dir: str | Path) -> None:
        base_dir_str = str(base_dir)
        if not base_dir_str.strip():
            raise ValueError("base_dir cannot be empty")
        if ".." in Path(base_dir_str).parts:
            raise ValueError(f"Path traversal detected in base_dir: {base_dir_str}")

        self.base_dir = Path(base_dir_str).expanduser()
        self.custom_dir = self.base_dir / CUSTOM_DIR
        self.builtin_dir = self.base_dir / BUILTIN_DIR

        try:
            self.custom_dir.mkdir(parents=True, exist_ok=True)
            self.builtin_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                f"Failed to create provider store: {e}",
                extra={"base_dir": str(self.base_dir)},
                exc_info=True,
            )
            raise OSError(f"Failed to create directory {self.base_dir}: {e}") from e

        logger.debug(f"Initialized provider store at {self.base_dir.absolute()}")

    def _custom_path(self, slug: str) -> Path:
        return self.custom_dir / f"{_check_slug(slug)}.json"

    def _builtin_path(self, slug: str) -> Path:
        return self.builtin_dir / f"{_check_slug(slug)}.json"

    def save(self, config: DynamicProviderConfig) -> Path:
        """Write a config to custom/<slug>.json, replacing any previous one.

        Raises:
            ValueError: If the slug is unsafe
            StorageError: If the file cannot be written
        """
        path = self._custom_path(config.slug)
        json_data = config.model_dump_json(indent=2)
        try:
            path.write_text(json_data, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}", extra={"provider": config.slug}, exc_info=True)
            raise StorageError(f"Failed to write {path.name}: {e}", phase="store") from e

        logger.info(
            f"Saved provider config to {path.absolute()}",
            extra={"provider": config.slug, "size": len(json_data)},
        )
        return path

    def _load(self, path: Path, built_in: bool) -> DynamicProviderConfig:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}", phase="load") from e
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in {path.name}: {e}", phase="load") from e

        try:
            config = DynamicProviderConfig.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"Invalid provider config in {path.name}: {e}", phase="load") from e

        return config.model_copy(update={"is_built_in": True}) if built_in else config

    def get(self, slug: str) -> Optional[DynamicProviderConfig]:
        """Custom config first, then built-in; None if neither exists."""
        custom = self._custom_path(slug)
        if custom.exists():
            return self._load(custom, built_in=False)
        builtin = self._builtin_path(slug)
        if builtin.exists():
            return self._load(builtin, built_in=True)
        return None

    def exists(self, slug: str) -> bool:
        return self._custom_path(slug).exists() or self._builtin_path(slug).exists()

    def list(self) -> List[DynamicProviderConfig]:
        """All configs sorted by name; custom entries shadow built-ins."""
        configs = {}
        for directory, built_in in ((self.builtin_dir, True), (self.custom_dir, False)):
            for path in sorted(directory.glob("*.json")):
                try:
                    config = self._load(path, built_in=built_in)
                except StorageError as e:
                    logger.warning(f"Skipping provider file {path}: {e}")
                    continue
                configs[config.slug] = config
        return sorted(configs.values(), key=lambda c: c.name.lower())

    def delete(self, slug: str) -> bool:
        """Remove a custom config. Built-in configs cannot be deleted.

        Returns:
            True if a file was removed, False if no custom config existed

        Raises:
            StorageError: If slug only exists as a built-in, or removal fails
        """
        path = self._custom_path(slug)
        if not path.exists():
            if self._builtin_path(slug).exists():
                raise StorageError(f"Built-in provider '{slug}' cannot be deleted", phase="delete")
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {path.name}: {e}", phase="delete") from e
        logger.info(f"Deleted provider config {slug}", extra={"provider": slug})
        return True

    def mark_validated(self, slug: str, when: Optional[datetime] = None) -> DynamicProviderConfig:
        """Refresh last_validated_at on a stored config and save it to custom/."""
        config = self.get(slug)
        if config is None:
            raise StorageError(f"Provider '{slug}' not found", phase="mark_validated")
        updated = config.with_validated_at(when)
        self.save(updated)
        return updated
