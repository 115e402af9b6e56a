from typing import List

from fastapi import APIRouter, Depends, HTTPException

from dependencies import get_backup_manager, get_store
from models.backup import BackupResult, BackupSummary, MigrationLogEntry
from store.accessor import LocalStore
from utils.auth import require_session
from utils.backup import BackupManager
from utils.errors import BackupNotFound
from utils.migration_log import get_migration_log

router = APIRouter(dependencies=[Depends(require_session)])


@router.get("/backups", response_model=List[BackupSummary])
async def list_backups(backups: BackupManager = Depends(get_backup_manager)):
    return backups.get_available_backups()


@router.post("/backups", response_model=BackupResult)
async def create_backup(backups: BackupManager = Depends(get_backup_manager)):
    result = backups.create_full_backup()
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)
    return result


@router.post("/backups/clean")
async def clean_backups(backups: BackupManager = Depends(get_backup_manager)):
    deleted = backups.clean_old_backups()
    return {"deleted": deleted, "remaining": len(backups.get_available_backups())}


@router.post("/backups/{backup_key}/restore", response_model=BackupResult)
async def restore_backup(backup_key: str, backups: BackupManager = Depends(get_backup_manager)):
    try:
        result = backups.restore_from_backup(backup_key)
    except BackupNotFound as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)
    return result


@router.get("/migration-log", response_model=List[MigrationLogEntry])
async def migration_log(store: LocalStore = Depends(get_store)):
    return get_migration_log(store)
