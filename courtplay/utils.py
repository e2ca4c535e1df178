"""Utility functions for file I/O, ids and list filtering."""

import json
import logging
import secrets
import time
from pathlib import Path
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from .constants import ID_PREFIXES

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('courtplay.utils')


def load_json(
    path: Path | str,
    schema: type[T] | None = None,
) -> Any | T:
    """
    Load JSON file with optional schema validation.

    Args:
        path: Path to JSON file (str or Path object)
        schema: Optional Pydantic model to validate against

    Returns:
        Parsed JSON (validated if schema provided)

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If JSON is malformed
        ValueError: If schema validation fails
    """
    path = Path(path)

    logger.debug(f'Loading JSON from: {path}')

    if not path.exists():
        logger.error(f'File not found: {path}')
        raise FileNotFoundError(f'File not found: {path}')

    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
        logger.debug(f'Successfully loaded JSON from: {path}')
    except json.JSONDecodeError as e:
        logger.error(f'Invalid JSON in {path}: {e.msg} at position {e.pos}')
        raise json.JSONDecodeError(f'Invalid JSON in {path}: {e.msg}', e.doc, e.pos) from e

    if schema:
        try:
            validated = schema.model_validate(data)
            logger.debug(f'Schema validation passed for: {path}')
            return validated
        except ValidationError as e:
            logger.error(f'Schema validation failed for {path}: {e}')
            raise ValueError(f'Schema validation failed for {path}:\n{e}') from e

    return data


def save_json(
    path: Path | str,
    data: Any,
    indent: int = 2,
    create_dirs: bool = True,
) -> None:
    """
    Save data as JSON file.

    Pydantic models are dumped by alias, so stored documents keep the
    camelCase field names (``playerPositions``, ``startPositionId``).

    Raises:
        TypeError: If data is not JSON-serializable
        OSError: If file cannot be written
    """
    path = Path(path)

    logger.debug(f'Saving JSON to: {path}')

    if create_dirs:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f'Failed to create directory {path.parent}: {e}')
            raise

    json_data = data.model_dump(by_alias=True) if isinstance(data, BaseModel) else data

    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(json_data, f, indent=indent, ensure_ascii=False)
        logger.debug(f'Successfully saved JSON to: {path}')
    except TypeError as e:
        logger.error(f'Data is not JSON-serializable: {e}')
        raise TypeError(f'Data is not JSON-serializable: {e}') from e
    except OSError as e:
        logger.error(f'Failed to write file {path}: {e}')
        raise


def generate_id(kind: str) -> str:
    """Generate a unique id such as ``pos_1718030400123_k3j9x0a2b``."""
    prefix = ID_PREFIXES[kind]
    return f'{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}'


def all_tags(*collections: Iterable[Any]) -> list[str]:
    """Sorted unique tags across any number of tagged entity collections."""
    tags: set[str] = set()
    for items in collections:
        for item in items:
            for tag in getattr(item, 'tags', []) or []:
                if tag.strip():
                    tags.add(tag.strip())
    return sorted(tags)


def filter_items(items: Iterable[Any], search: str = '', tags: Iterable[str] = ()) -> list[Any]:
    """
    Filter named entities by search text and tags.

    Args:
        items: Entities with ``name`` (and optionally ``tags``) attributes
        search: Case-insensitive substring matched against the name
        tags: Every selected tag must be present on the item (case-insensitive)

    Returns:
        Matching items in their original order
    """
    needle = search.strip().lower()
    wanted = {t.strip().lower() for t in tags if t.strip()}

    filtered = []
    for item in items:
        if needle and needle not in item.name.lower():
            continue
        if wanted:
            item_tags = {t.strip().lower() for t in getattr(item, 'tags', []) or []}
            if not wanted <= item_tags:
                continue
        filtered.append(item)
    return filtered
