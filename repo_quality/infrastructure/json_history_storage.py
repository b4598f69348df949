"""JSON file implementation of history storage, one file per repository."""
import json
import logging
import shutil
from pathlib import Path
from typing import List, Union
from repo_quality.domain.history_storage_interface import IHistoryStorage
from repo_quality.domain.models import AnalysisHistory
from repo_quality.infrastructure.cache import safe_filename


logger = logging.getLogger(__name__)


class JsonFileHistoryStorage(IHistoryStorage):
    """Stores each repository's history as ``owner_name.json``.

    Timestamps are written as ISO-8601 strings and parsed back into
    datetimes on load.
    """

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create history directory {self._directory}: {e}")

    def load_histories(self) -> List[AnalysisHistory]:
        if not self._directory.exists():
            return []

        histories = []
        for path in sorted(self._directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                histories.append(AnalysisHistory.from_dict(data))
            except (OSError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable history file {path.name}: {e}")
        return histories

    def save_history(self, history: AnalysisHistory) -> None:
        path = self._file_path(history.repository_id)
        path.write_text(json.dumps(history.to_dict(), indent=2), encoding="utf-8")

    def delete_history(self, repository_id: str) -> None:
        self._file_path(repository_id).unlink(missing_ok=True)

    def clear(self) -> None:
        shutil.rmtree(self._directory, ignore_errors=True)
        self._directory.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        pass

    def _file_path(self, repository_id: str) -> Path:
        return self._directory / f"{safe_filename(repository_id)}.json"
