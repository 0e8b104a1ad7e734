"""Strategy plugin loaders.

Identifier forms understood by ``LocalPluginLoader``:
- a built-in name (``"hold"``, ``"buy-and-hold"``)
- ``"<module>:<Class>"``, where ``<module>`` is a dotted path to a ``.py``
  file under the plugin directory (``"acme.momentum:Momentum"`` →
  ``<plugin_dir>/acme/momentum.py``)
- ``"<module>"``, which loads the class named ``Strategy``

``RegistryPluginLoader`` first asks the plugin registry for the artifact's
class path and download URL, stores the artifact in the plugin directory,
then resolves it locally.

Every failure raises PluginResolutionError before any trading day runs.
"""

from __future__ import annotations

import importlib.util
import json
import sys
import uuid
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx

from alphaback.backtesting.exceptions import PluginResolutionError
from alphaback.common.logging import get_logger
from alphaback.strategies.examples import BUILTIN_STRATEGIES

logger = get_logger("STRATEGY")

DEFAULT_CLASS_NAME = "Strategy"
_MODULE_PREFIX = "_alphaback_plugin_"


class PluginLoader(Protocol):
    """Resolves a strategy identifier to an instantiated strategy."""

    def load(self, identifier: str) -> object: ...


class LocalPluginLoader:
    """Loads strategy classes from Python files in ``plugin_dir``.

    Plugin modules are imported under private, per-load module names so a
    plugin can never shadow an installed package.
    """

    def __init__(
        self,
        plugin_dir: str | Path,
        builtins: Mapping[str, Callable[[], object]] | None = None,
    ) -> None:
        self.plugin_dir = Path(plugin_dir)
        self._builtins = dict(BUILTIN_STRATEGIES if builtins is None else builtins)

    def is_builtin(self, identifier: str) -> bool:
        return identifier.strip() in self._builtins

    def load(self, identifier: str) -> object:
        identifier = identifier.strip()
        if not identifier:
            raise PluginResolutionError("Strategy identifier is empty")

        if identifier in self._builtins:
            return _instantiate(self._builtins[identifier], identifier)

        module_path, _, class_name = identifier.partition(":")
        class_name = class_name or DEFAULT_CLASS_NAME
        path = self.module_file(module_path)
        if not path.is_file():
            raise PluginResolutionError(
                f"No strategy module found for {identifier}",
                context={"identifier": identifier, "path": str(path)},
            )

        module = _import_file(path, identifier)
        factory = getattr(module, class_name, None)
        if factory is None:
            raise PluginResolutionError(
                f"Strategy module has no attribute {class_name}",
                context={"identifier": identifier, "path": str(path)},
            )

        instance = _instantiate(factory, identifier)
        logger.info(
            "Strategy loaded",
            extra={"data": {"identifier": identifier, "class": type(instance).__name__}},
        )
        return instance

    def module_file(self, module_path: str) -> Path:
        """Map a dotted module path to its file under the plugin directory.

        Raises:
            PluginResolutionError: If the path is not a dotted sequence of
                Python identifiers, or resolves outside the plugin directory.
        """
        segments = module_path.split(".")
        if not all(segment.isidentifier() for segment in segments):
            raise PluginResolutionError(
                f"Invalid strategy module path: {module_path!r}",
                context={"module_path": module_path},
            )

        root = self.plugin_dir.resolve()
        path = root.joinpath(*segments[:-1], f"{segments[-1]}.py").resolve()
        if not path.is_relative_to(root):
            raise PluginResolutionError(
                "Strategy module resolves outside the plugin directory",
                context={"module_path": module_path},
            )
        return path


class RegistryPluginLoader:
    """Resolves identifiers through the plugin registry, then loads locally.

    The registry answers ``GET {registry_url}/{identifier}`` with
    ``{"classPath": "acme/Momentum", "downloadUrl": "https://..."}``,
    optionally wrapped as ``{"statusCode": 200, "body": "<json>"}``.
    An empty ``downloadUrl`` means the artifact is already on disk.

    Args:
        registry_url: Base URL of the registry.
        plugin_dir: Directory artifacts are stored in and loaded from.
        client: Optional ``httpx.Client``; the caller keeps ownership.
        timeout: Request timeout when this loader creates its own client.
    """

    def __init__(
        self,
        registry_url: str,
        plugin_dir: str | Path,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        builtins: Mapping[str, Callable[[], object]] | None = None,
    ) -> None:
        self._registry_url = registry_url.rstrip("/")
        self._local = LocalPluginLoader(plugin_dir, builtins=builtins)
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def load(self, identifier: str) -> object:
        if self._local.is_builtin(identifier):
            return self._local.load(identifier)

        descriptor = self._fetch_descriptor(identifier)
        local_identifier = class_path_to_identifier(descriptor["classPath"])
        download_url = descriptor.get("downloadUrl") or ""

        if download_url:
            module_path = local_identifier.partition(":")[0]
            self._download(download_url, self._local.module_file(module_path), identifier)

        return self._local.load(local_identifier)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _fetch_descriptor(self, identifier: str) -> dict:
        url = f"{self._registry_url}/{quote(identifier.strip(), safe='')}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
            descriptor = response.json()
        except httpx.HTTPStatusError as exc:
            raise PluginResolutionError(
                f"Plugin registry returned HTTP {exc.response.status_code} for {identifier}",
                context={"identifier": identifier, "status_code": exc.response.status_code},
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            raise PluginResolutionError(
                f"Plugin registry lookup failed for {identifier}: {exc}",
                context={"identifier": identifier},
            ) from exc

        return _unwrap_descriptor(descriptor, identifier)

    def _download(self, url: str, target: Path, identifier: str) -> None:
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PluginResolutionError(
                f"Strategy artifact download failed for {identifier}: {exc}",
                context={"identifier": identifier},
            ) from exc

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(".py.part")
        tmp.write_bytes(response.content)
        tmp.replace(target)
        logger.info(
            "Strategy artifact downloaded",
            extra={"data": {"identifier": identifier, "bytes": len(response.content)}},
        )


def class_path_to_identifier(class_path: str) -> str:
    """Turn a registry class path into a local loader identifier.

    ``"acme/signals/Momentum"`` → ``"acme.signals.Momentum:Momentum"``: the
    file ``acme/signals/Momentum.py`` holding class ``Momentum``.
    """
    cleaned = class_path.strip().strip("/")
    for suffix in (".py", ".class"):
        cleaned = cleaned.removesuffix(suffix)
    module_path = cleaned.replace("/", ".")
    class_name = module_path.rsplit(".", 1)[-1]
    if not class_name:
        raise PluginResolutionError(
            "Plugin registry returned an empty class path",
            context={"class_path": class_path},
        )
    return f"{module_path}:{class_name}"


def _unwrap_descriptor(descriptor: object, identifier: str) -> dict:
    if isinstance(descriptor, dict) and "body" in descriptor:
        status = descriptor.get("statusCode", 200)
        if status != 200:
            raise PluginResolutionError(
                f"Plugin registry returned status {status} for {identifier}",
                context={"identifier": identifier, "status_code": status},
            )
        body = descriptor["body"]
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError as exc:
                raise PluginResolutionError(
                    "Plugin registry body is not valid JSON",
                    context={"identifier": identifier},
                ) from exc
        descriptor = body

    if not isinstance(descriptor, dict) or not isinstance(descriptor.get("classPath"), str):
        raise PluginResolutionError(
            "Plugin registry response has no classPath",
            context={"identifier": identifier},
        )
    return descriptor


def _import_file(path: Path, identifier: str):
    module_name = f"{_MODULE_PREFIX}{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginResolutionError(
            f"Cannot import strategy module for {identifier}",
            context={"identifier": identifier, "path": str(path)},
        )

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise PluginResolutionError(
            f"Strategy module for {identifier} failed to import: {type(exc).__name__}: {exc}",
            context={"identifier": identifier, "path": str(path)},
        ) from exc
    finally:
        # Needed only while the module body runs
        sys.modules.pop(module_name, None)
    return module


def _instantiate(factory: object, identifier: str) -> object:
    if not callable(factory):
        raise PluginResolutionError(
            f"Strategy entry point for {identifier} is not callable",
            context={"identifier": identifier},
        )
    try:
        return factory()
    except Exception as exc:
        raise PluginResolutionError(
            f"Strategy {identifier} failed to instantiate: {type(exc).__name__}: {exc}",
            context={"identifier": identifier},
        ) from exc
