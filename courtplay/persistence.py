"""Persistence collaborator interface and two implementations.

The core only talks to storage through ``Persistence``: one repository per
entity type (``get_all`` / ``save`` / ``delete``) plus ``has_data`` and
``import_all``. Every call is asynchronous and may raise; callers treat a
raised call as "did not happen".
"""

import asyncio
import logging
from pathlib import Path
from typing import Generic, Optional, Protocol, TypeVar

from pydantic import BaseModel

from .schemas import CurrentBundle, Player, Position, Scenario, Sequence
from .utils import load_json, save_json

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('courtplay.persistence')


class Repository(Protocol[T]):
    async def get_all(self) -> list[T]: ...

    async def save(self, entity: T) -> T: ...

    async def delete(self, entity_id: str) -> None: ...


class Persistence(Protocol):
    players: Repository[Player]
    positions: Repository[Position]
    scenarios: Repository[Scenario]
    sequences: Repository[Sequence]

    async def has_data(self) -> bool: ...

    async def import_all(self, bundle: CurrentBundle) -> None: ...


# ==================== In-memory ====================


class _MemoryRepository(Generic[T]):
    def __init__(self, owner: 'InMemoryPersistence', field: str):
        self._owner = owner
        self._field = field

    def _items(self) -> list[T]:
        return getattr(self._owner.bundle, self._field)

    async def get_all(self) -> list[T]:
        self._owner._check(f'{self._field}.get_all')
        return list(self._items())

    async def save(self, entity: T) -> T:
        self._owner._check(f'{self._field}.save')
        items = self._items()
        for index, existing in enumerate(items):
            if existing.id == entity.id:
                items[index] = entity
                break
        else:
            items.append(entity)
        return entity

    async def delete(self, entity_id: str) -> None:
        self._owner._check(f'{self._field}.delete')
        setattr(
            self._owner.bundle,
            self._field,
            [item for item in self._items() if item.id != entity_id],
        )


class InMemoryPersistence:
    """Keeps a CurrentBundle in memory. ``fail_next`` simulates storage errors."""

    def __init__(self, bundle: Optional[CurrentBundle] = None):
        self.bundle = bundle.model_copy(deep=True) if bundle else CurrentBundle()
        self.calls: list[str] = []
        self._failures: list[tuple[Optional[str], Exception]] = []

        self.players = _MemoryRepository[Player](self, 'players')
        self.positions = _MemoryRepository[Position](self, 'positions')
        self.scenarios = _MemoryRepository[Scenario](self, 'scenarios')
        self.sequences = _MemoryRepository[Sequence](self, 'sequences')

    def fail_next(self, exc: Optional[Exception] = None, operation: Optional[str] = None) -> None:
        """Make the next call (or the next call to ``operation``) raise ``exc``."""
        self._failures.append((operation, exc or OSError('simulated storage failure')))

    def _check(self, operation: str) -> None:
        for index, (wanted, exc) in enumerate(self._failures):
            if wanted is None or wanted == operation:
                del self._failures[index]
                raise exc
        self.calls.append(operation)

    async def has_data(self) -> bool:
        self._check('has_data')
        return bool(self.bundle.players or self.bundle.positions)

    async def import_all(self, bundle: CurrentBundle) -> None:
        self._check('import_all')
        self.bundle = bundle.model_copy(deep=True)


# ==================== JSON file ====================


class _FileRepository(Generic[T]):
    def __init__(self, owner: 'JsonFilePersistence', field: str):
        self._owner = owner
        self._field = field

    async def get_all(self) -> list[T]:
        bundle = await self._owner._read()
        return list(getattr(bundle, self._field))

    async def save(self, entity: T) -> T:
        async with self._owner._lock:
            bundle = await self._owner._read()
            items = list(getattr(bundle, self._field))
            for index, existing in enumerate(items):
                if existing.id == entity.id:
                    items[index] = entity
                    break
            else:
                items.append(entity)
            setattr(bundle, self._field, items)
            await self._owner._write(bundle)
        return entity

    async def delete(self, entity_id: str) -> None:
        async with self._owner._lock:
            bundle = await self._owner._read()
            items = [item for item in getattr(bundle, self._field) if item.id != entity_id]
            setattr(bundle, self._field, items)
            await self._owner._write(bundle)


class JsonFilePersistence:
    """Stores everything as one CurrentBundle JSON document."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

        self.players = _FileRepository[Player](self, 'players')
        self.positions = _FileRepository[Position](self, 'positions')
        self.scenarios = _FileRepository[Scenario](self, 'scenarios')
        self.sequences = _FileRepository[Sequence](self, 'sequences')

    async def _read(self) -> CurrentBundle:
        if not self.path.exists():
            return CurrentBundle()
        return await asyncio.to_thread(load_json, self.path, CurrentBundle)

    async def _write(self, bundle: CurrentBundle) -> None:
        await asyncio.to_thread(save_json, self.path, bundle)
        logger.debug(f'Wrote {self.path}')

    async def has_data(self) -> bool:
        bundle = await self._read()
        return bool(bundle.players or bundle.positions)

    async def import_all(self, bundle: CurrentBundle) -> None:
        async with self._lock:
            await self._write(bundle)
