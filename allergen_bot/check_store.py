import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from allergen_bot.constants import ALLERGEN_STORE_PATH, CHECK_STORE_PATH
from allergen_bot.errors import CheckNotFoundError, StorageError
from allergen_bot.models import CheckRecord, normalize_allergens

logger = logging.getLogger(__name__)


def _load_json(path: Path, default):
    match path.exists():
        case True:
            try:
                with open(path) as f:
                    return json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Store load failed: %s, starting fresh", e)
                return default
        case False:
            return default


def _save_json(path: Path, data) -> None:
    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Store save failed for {path.name}: {e}") from e


def _newest_first(records: list[CheckRecord]) -> list[CheckRecord]:
    # reversed() keeps later saves ahead of earlier ones on equal timestamps
    return sorted(reversed(records), key=lambda r: r.timestamp, reverse=True)


class CheckStore(ABC):
    """Persistence gateway for saved checks."""

    @abstractmethod
    async def save(self, user_id: str, record: CheckRecord) -> str:
        """Store record for user_id and return its new id."""
        ...

    @abstractmethod
    async def get(self, check_id: str) -> CheckRecord: ...

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[CheckRecord]: ...

    @abstractmethod
    async def list_favorites_by_user(self, user_id: str) -> list[CheckRecord]: ...

    @abstractmethod
    async def set_favorite(self, check_id: str, value: bool) -> None: ...

    @abstractmethod
    async def delete(self, check_id: str) -> None: ...


class JsonCheckStore(CheckStore):
    """CheckStore backed by a single JSON file of record documents keyed by id."""

    def __init__(self, path: Path = Path(CHECK_STORE_PATH)) -> None:
        self._path = Path(path)
        self._records: dict[str, CheckRecord] = {}
        self._load()

    def _load(self) -> None:
        raw = _load_json(self._path, {})
        try:
            self._records = dict(
                map(lambda kv: (kv[0], CheckRecord.from_dict(kv[1])), raw.items())
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Check store has unreadable records: %s, starting fresh", e)
            self._records = {}

    def _save(self) -> None:
        _save_json(
            self._path,
            dict(map(lambda kv: (kv[0], kv[1].to_dict()), self._records.items())),
        )

    def _require(self, check_id: str) -> CheckRecord:
        match self._records.get(check_id):
            case None:
                raise CheckNotFoundError(check_id)
            case record:
                return record

    async def save(self, user_id: str, record: CheckRecord) -> str:
        check_id = uuid.uuid4().hex
        self._records[check_id] = record.with_updates(
            id=check_id,
            user_id=user_id,
            timestamp=time.time(),
            is_favorite=False,
        )
        try:
            self._save()
        except StorageError:
            del self._records[check_id]
            raise
        logger.info("Saved check %s for user %s", check_id, user_id)
        return check_id

    async def get(self, check_id: str) -> CheckRecord:
        return self._require(check_id)

    async def list_by_user(self, user_id: str) -> list[CheckRecord]:
        return _newest_first(
            list(filter(lambda r: r.user_id == user_id, self._records.values()))
        )

    async def list_favorites_by_user(self, user_id: str) -> list[CheckRecord]:
        return list(filter(lambda r: r.is_favorite, await self.list_by_user(user_id)))

    async def set_favorite(self, check_id: str, value: bool) -> None:
        previous = self._require(check_id)
        self._records[check_id] = previous.with_updates(is_favorite=value)
        try:
            self._save()
        except StorageError:
            self._records[check_id] = previous
            raise

    async def delete(self, check_id: str) -> None:
        previous = self._records.pop(check_id, None)
        match previous:
            case None:
                raise CheckNotFoundError(check_id)
            case _:
                pass
        try:
            self._save()
        except StorageError:
            self._records[check_id] = previous
            raise


class AllergenStore:
    """Per-user allergen selection. Gluten is always included."""

    def __init__(self, path: Path = Path(ALLERGEN_STORE_PATH)) -> None:
        self._path = Path(path)
        match _load_json(self._path, {}):
            case dict() as loaded:
                self._store: dict[str, list[str]] = loaded
            case _:
                logger.warning("Allergen store is not a mapping, starting fresh")
                self._store = {}

    def get(self, user_key: str) -> tuple[str, ...]:
        return normalize_allergens(self._store.get(user_key, []))

    def set(self, user_key: str, allergens: tuple[str, ...]) -> tuple[str, ...]:
        """Save the selection and return it normalized. Raises StorageError, keeping the old one."""
        selected = normalize_allergens(allergens)
        previous = self._store.get(user_key)
        self._store[user_key] = list(selected)
        try:
            _save_json(self._path, self._store)
        except StorageError:
            match previous:
                case None:
                    del self._store[user_key]
                case saved:
                    self._store[user_key] = saved
            raise
        return selected
