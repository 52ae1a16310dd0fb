"""
JSON File Settings Storage

DESIGN DECISION: Long-lived settings are small documents, so each one
is a JSON file in a data directory:

    budget.json       BudgetConfiguration
    categories.json   CategoryState (custom categories + renames)
    parse_cache.json  ParseCache.to_dict() map

TRADEOFFS:
- Whole-document writes (fine for a handful of KB)
- No locking; one process owns the directory

Writes go to a temporary sibling first and are then renamed over the
target, so a crash never leaves a half-written document.
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from puldar.models.ledger import BudgetConfiguration, CategoryState
from puldar.services.storage.interface import (
    SettingsStorageInterface,
    StorageError,
)


BUDGET_FILE = "budget.json"
CATEGORIES_FILE = "categories.json"
PARSE_CACHE_FILE = "parse_cache.json"


class JsonFileSettingsStorage(SettingsStorageInterface):
    """Settings documents stored as JSON files under `data_dir`."""

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _read_text(self, filename: str) -> Optional[str]:
        path = self._data_dir / filename
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def _write_text(self, filename: str, text: str) -> bool:
        path = self._data_dir / filename
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(text, encoding="utf-8")
            os.replace(temp_path, path)
            return True
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    async def load_configuration(self) -> Optional[BudgetConfiguration]:
        text = self._read_text(BUDGET_FILE)
        if text is None:
            return None
        try:
            return BudgetConfiguration.model_validate_json(text)
        except ValidationError as e:
            raise StorageError(f"Corrupt budget configuration: {e}") from e

    async def save_configuration(self, configuration: BudgetConfiguration) -> bool:
        return self._write_text(BUDGET_FILE, configuration.model_dump_json(indent=2))

    async def load_category_state(self) -> CategoryState:
        text = self._read_text(CATEGORIES_FILE)
        if text is None:
            return CategoryState()
        try:
            return CategoryState.model_validate_json(text)
        except ValidationError as e:
            raise StorageError(f"Corrupt category state: {e}") from e

    async def save_category_state(self, state: CategoryState) -> bool:
        return self._write_text(CATEGORIES_FILE, state.model_dump_json(indent=2))

    async def load_parse_cache(self) -> dict[str, dict]:
        text = self._read_text(PARSE_CACHE_FILE)
        if text is None:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt parse cache: {e}") from e
        if not isinstance(data, dict):
            raise StorageError("Corrupt parse cache: expected a JSON object")
        return data

    async def save_parse_cache(self, data: dict[str, dict]) -> bool:
        return self._write_text(PARSE_CACHE_FILE, json.dumps(data, sort_keys=True))
