"""Registry of storage backends keyed by backend id."""

import asyncio
from dataclasses import replace
from functools import partial
from typing import Callable, Dict, List, Optional

from common.constants import BACKEND_KIND_FILESYSTEM, BACKEND_KIND_OBJECT_STORE
from common.logging_config import get_logger
from common.types import BackendDescriptor
from backends.base import StorageBackend
from backends.filesystem import FileSystemBackend
from backends.object_store import ObjectStoreBackend

logger = get_logger(__name__)

BackendFactory = Callable[[BackendDescriptor], StorageBackend]

DEFAULT_FACTORIES: Dict[str, BackendFactory] = {
    BACKEND_KIND_FILESYSTEM: FileSystemBackend.from_descriptor,
    BACKEND_KIND_OBJECT_STORE: ObjectStoreBackend.from_descriptor,
}


class UnsupportedBackendKindError(ValueError):
    """Raised when no factory is registered for a backend kind."""
    pass


class BackendRegistry:
    """
    Resolves backend ids to StorageBackend instances and tracks which
    backends are active. New kinds are added through `factories`;
    relative FileSystem paths resolve against `storage_root`.
    """

    def __init__(
        self,
        factories: Optional[Dict[str, BackendFactory]] = None,
        storage_root: Optional[str] = None
    ):
        self.factories: Dict[str, BackendFactory] = dict(DEFAULT_FACTORIES)
        if storage_root:
            self.factories[BACKEND_KIND_FILESYSTEM] = partial(
                FileSystemBackend.from_descriptor, storage_root=storage_root
            )
        if factories:
            self.factories.update(factories)
        self._backends: Dict[str, StorageBackend] = {}
        self._descriptors: Dict[str, BackendDescriptor] = {}
        self.lock = asyncio.Lock()

    def register(self, backend: StorageBackend) -> None:
        """Register an already constructed backend under its descriptor's id."""
        descriptor = backend.descriptor
        self._backends[descriptor.backend_id] = backend
        self._descriptors[descriptor.backend_id] = descriptor
        logger.info(f"Registered {descriptor.kind} backend {descriptor.name} ({descriptor.backend_id})")

    def register_descriptor(self, descriptor: BackendDescriptor) -> StorageBackend:
        """
        Build a backend from its descriptor using the factory for its kind.

        Raises:
            UnsupportedBackendKindError: no factory for descriptor.kind
        """
        factory = self.factories.get(descriptor.kind)
        if factory is None:
            raise UnsupportedBackendKindError(f"Unsupported backend kind: {descriptor.kind}")
        backend = factory(descriptor)
        self.register(backend)
        return backend

    def get(self, backend_id: str) -> Optional[StorageBackend]:
        return self._backends.get(backend_id)

    def descriptor(self, backend_id: str) -> Optional[BackendDescriptor]:
        return self._descriptors.get(backend_id)

    def list_active(self) -> List[BackendDescriptor]:
        return [d for d in self._descriptors.values() if d.is_active]

    def list_all(self) -> List[BackendDescriptor]:
        return list(self._descriptors.values())

    def set_active(self, backend_id: str, is_active: bool) -> Optional[BackendDescriptor]:
        descriptor = self._descriptors.get(backend_id)
        if descriptor is None:
            return None
        if descriptor.is_active != is_active:
            descriptor = replace(descriptor, is_active=is_active)
            self._descriptors[backend_id] = descriptor
            self._backends[backend_id].descriptor = descriptor
            state = "active" if is_active else "inactive"
            logger.warning(f"Backend {backend_id} marked {state}")
        return descriptor

    async def remove(self, backend_id: str) -> bool:
        backend = self._backends.pop(backend_id, None)
        self._descriptors.pop(backend_id, None)
        if backend is None:
            return False
        await backend.close()
        logger.info(f"Removed backend {backend_id}")
        return True

    async def check_health(self) -> Dict[str, bool]:
        """
        Probe every registered backend and update its active flag.

        Returns:
            Mapping of backend id to probe result
        """
        async with self.lock:
            backend_ids = list(self._backends)
            probes = await asyncio.gather(
                *(self._backends[backend_id].is_healthy() for backend_id in backend_ids)
            )
            results = dict(zip(backend_ids, probes))
            for backend_id, healthy in results.items():
                self.set_active(backend_id, healthy)

        healthy_count = sum(1 for healthy in results.values() if healthy)
        logger.info(f"Health check: {healthy_count}/{len(results)} backends healthy")
        return results

    async def close(self) -> None:
        for backend in self._backends.values():
            await backend.close()
