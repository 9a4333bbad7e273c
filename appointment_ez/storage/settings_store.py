import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from appointment_ez.core.exceptions import StorageError
from appointment_ez.models.settings import SystemSettings

logger = logging.getLogger(__name__)


class SettingsStore:
    def __init__(self, file_path: str | Path = 'settings.json') -> None:
        self._file_path = Path(file_path)
        self._lock = threading.Lock()

    def load(self) -> SystemSettings:
        with self._lock:
            if not self._file_path.exists():
                defaults = SystemSettings()
                try:
                    self._write(defaults)
                except StorageError:
                    logger.warning('Could not create settings file %s; using defaults', self._file_path)
                return defaults

            try:
                data = json.loads(self._file_path.read_text(encoding='utf-8'))
                return SystemSettings.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError):
                logger.warning('Settings file %s is unreadable; using defaults', self._file_path, exc_info=True)
                return SystemSettings()

    def save(self, settings: SystemSettings) -> SystemSettings:
        with self._lock:
            self._write(settings)
        return settings

    def bcc_emails(self) -> list[str]:
        return list(self.load().email_settings.bcc_emails)

    def _write(self, settings: SystemSettings) -> None:
        temp_path = self._file_path.with_name(self._file_path.name + '.tmp')
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(
                json.dumps(settings.model_dump(by_alias=True), indent=2, ensure_ascii=False),
                encoding='utf-8',
            )
            temp_path.replace(self._file_path)
        except OSError as exc:
            logger.exception('Could not write settings file %s', self._file_path)
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError('Failed to save settings') from exc
