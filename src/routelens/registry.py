"""Adapter registry -- registration, discovery, detection and extraction.

:class:`AdapterRegistry` maps adapter names to instances. It is filled once
at startup (built-ins plus adapters found through the ``routelens.adapters``
entry-point group) and then frozen; afterwards it is only read.

Extraction runs adapter by adapter in registration order. Within one
adapter files are processed on a thread pool when more than one worker is
configured, and results are kept in input-file order either way. Adapters
that need the whole batch at once (see
:attr:`~routelens.adapters.base.FrameworkAdapter.batch_files`) are called
once with every file.
"""

from __future__ import annotations

import importlib.metadata
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, TypeVar, Union

from routelens.adapters import BUILTIN_ADAPTERS
from routelens.adapters.base import FrameworkAdapter
from routelens.exceptions import RegistryError
from routelens.models import AdapterInfo, GlobalConfig, Route, Schema, SourceFile

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "routelens.adapters"
"""The entry-point group third-party adapters register under."""

T = TypeVar("T")


class AdapterRegistry:
    """Named collection of framework adapters.

    Example:
        Typical usage::

            registry = AdapterRegistry()
            registry.register(FastAPIAdapter())
            registry.freeze()
            routes = registry.extract_routes(files, only=registry.detect(root))
    """

    def __init__(self, workers: int = 1) -> None:
        self._adapters: dict[str, FrameworkAdapter] = {}
        self._frozen = False
        self.workers = workers

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, adapter: FrameworkAdapter) -> None:
        """Add *adapter* under its :attr:`~FrameworkAdapter.name`.

        Raises:
            RegistryError: If the registry is frozen or the name is taken.
        """
        if self._frozen:
            raise RegistryError(f"Cannot register '{adapter.name}': the registry is frozen")
        if adapter.name in self._adapters:
            raise RegistryError(f"Adapter '{adapter.name}' is already registered")
        self._adapters[adapter.name] = adapter
        logger.debug("Registered adapter '%s' v%s", adapter.name, adapter.version)

    def freeze(self) -> None:
        """Refuse further registrations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def discover(self, config: GlobalConfig) -> list[str]:
        """Register adapters published through the ``routelens.adapters`` entry points.

        The ``adapters.enabled`` list of *config*, when non-empty, is an
        allowlist; ``adapters.disabled`` is a blocklist.

        Returns:
            Names of the adapters registered. Entry points that fail to load
            or do not yield a :class:`FrameworkAdapter` are logged as
            warnings and skipped.
        """
        loaded: list[str] = []
        enabled = set(config.adapters.enabled)
        disabled = set(config.adapters.disabled)

        for ep in importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP):
            if enabled and ep.name not in enabled:
                logger.debug("Adapter '%s' not in enabled list, skipping", ep.name)
                continue
            if ep.name in disabled:
                logger.debug("Adapter '%s' is disabled, skipping", ep.name)
                continue
            try:
                adapter = ep.load()()
                if not isinstance(adapter, FrameworkAdapter):
                    raise TypeError(f"{ep.value} is not a FrameworkAdapter")
                self.register(adapter)
            except Exception as exc:
                logger.warning("Failed to load adapter '%s': %s", ep.name, exc)
                continue
            loaded.append(adapter.name)
            logger.info("Loaded adapter '%s' from %s", adapter.name, ep.value)
        return loaded

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def get(self, name: str) -> FrameworkAdapter:
        """Look an adapter up by name.

        Raises:
            RegistryError: If no adapter is registered under *name*.
        """
        try:
            return self._adapters[name]
        except KeyError:
            raise RegistryError(f"Unknown framework '{name}'. Known: {', '.join(self.names())}") from None

    def names(self) -> list[str]:
        """Registered names in registration order."""
        return list(self._adapters)

    def list_adapters(self) -> list[AdapterInfo]:
        """Metadata of every registered adapter, in registration order."""
        return [adapter.info() for adapter in self._adapters.values()]

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    # ------------------------------------------------------------------
    # Detection and extraction
    # ------------------------------------------------------------------

    def detect(self, project_root: Union[str, Path]) -> list[str]:
        """Names of the adapters whose framework the project uses.

        Raises:
            AdapterError: If a manifest exists but cannot be read.
        """
        found = [name for name, adapter in self._adapters.items() if adapter.detect(project_root)]
        logger.info("Detected frameworks: %s", ", ".join(found) or "none")
        return found

    def _selected(self, only: Optional[Iterable[str]]) -> list[FrameworkAdapter]:
        if only is None:
            return list(self._adapters.values())
        wanted = list(only)
        for name in wanted:
            self.get(name)
        return [adapter for name, adapter in self._adapters.items() if name in wanted]

    def _fan_out(self, work: Callable[[SourceFile], list[T]], files: Sequence[SourceFile]) -> list[T]:
        results: list[T] = []
        if self.workers <= 1 or len(files) <= 1:
            for file in files:
                results.extend(work(file))
            return results
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for chunk in pool.map(work, files):
                results.extend(chunk)
        return results

    def extract_routes(
        self, files: Sequence[SourceFile], only: Optional[Iterable[str]] = None
    ) -> list[Route]:
        """Routes from every selected adapter, concatenated in registration order.

        Args:
            files: Source files, in the order results should follow.
            only: Adapter names to run; ``None`` runs all of them.

        Raises:
            RegistryError: If *only* names an unknown adapter.
        """
        routes: list[Route] = []
        for adapter in self._selected(only):
            if adapter.batch_files:
                found = adapter.extract_routes(files)
            else:
                found = self._fan_out(adapter.file_routes, [f for f in files if adapter.accepts(f)])
            logger.debug("%s: %d routes", adapter.name, len(found))
            routes.extend(found)
        return routes

    def extract_schemas(
        self, files: Sequence[SourceFile], only: Optional[Iterable[str]] = None
    ) -> list[Schema]:
        """Component schemas from every selected adapter, in registration order.

        Raises:
            RegistryError: If *only* names an unknown adapter.
        """
        schemas: list[Schema] = []
        for adapter in self._selected(only):
            found = self._fan_out(adapter.file_schemas, [f for f in files if adapter.accepts(f)])
            logger.debug("%s: %d schemas", adapter.name, len(found))
            schemas.extend(found)
        return schemas


def create_default_registry(config: Optional[GlobalConfig] = None) -> AdapterRegistry:
    """A frozen registry with the built-in adapters plus discovered ones.

    Built-ins listed in ``adapters.disabled`` are left out.
    """
    config = config or GlobalConfig()
    registry = AdapterRegistry(workers=config.scan.workers)
    disabled = set(config.adapters.disabled)
    for adapter_cls in BUILTIN_ADAPTERS:
        adapter = adapter_cls()
        if adapter.name in disabled:
            logger.debug("Built-in adapter '%s' is disabled", adapter.name)
            continue
        registry.register(adapter)
    registry.discover(config)
    registry.freeze()
    return registry
