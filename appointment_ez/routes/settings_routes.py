from fastapi import APIRouter, Depends

from appointment_ez.auth.dependencies import require_admin
from appointment_ez.dependencies import get_settings_store
from appointment_ez.models.settings import SystemSettings
from appointment_ez.storage.settings_store import SettingsStore

router = APIRouter(tags=['settings'])


@router.get('/settings', response_model=SystemSettings)
def get_settings(settings_store: SettingsStore = Depends(get_settings_store)):
    return settings_store.load()


@router.post('/settings', dependencies=[Depends(require_admin)])
def save_settings(data: SystemSettings, settings_store: SettingsStore = Depends(get_settings_store)):
    settings_store.save(data)
    return {'success': True}
