import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_backup_manager, get_user_manager
from models.sync import SyncAction, SyncRequest
from store.keys import format_timestamp, is_user_data_key
from utils.backup import BackupManager
from utils.errors import MathsMayhemError
from utils.users import UserManager

log = logging.getLogger(__name__)

router = APIRouter()


def _fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


@router.post("/user-data")
async def user_data(
    body: SyncRequest,
    users: UserManager = Depends(get_user_manager),
    backups: BackupManager = Depends(get_backup_manager),
):
    """Action endpoint the remote sync client talks to."""
    try:
        action = SyncAction(body.action)
    except ValueError:
        return _fail(400, "Invalid action")
    username = body.username
    data = body.data
    try:
        if action == SyncAction.SAVE_USER_DATA:
            if not username or data is None:
                return _fail(400, "Username and data required")
            users.apply_user_data(username, data)
            return {"success": True, "message": "Data saved successfully"}

        if action == SyncAction.LOAD_USER_DATA:
            if username:
                return {"success": True, "data": users.export_user_data(username)}
            return {"success": True, "message": "Data loaded successfully", "users": users.list_usernames()}

        if action == SyncAction.GET_USER:
            if not username:
                return _fail(400, "Username required")
            if not users.has_user_data(username):
                return {"success": True, "data": None}
            return {"success": True, "data": users.export_user_data(username)}

        if action == SyncAction.UPDATE_SUBSCRIPTION:
            if not username or data is None:
                return _fail(400, "Username and data required")
            record = users.update_subscription(username, data)
            return {"success": True, "subscription": record.model_dump(by_alias=True)}

        if action == SyncAction.UPDATE_PROGRESS:
            if not username or data is None:
                return _fail(400, "Username and data required")
            record = users.update_progress(username, data)
            return {"success": True, "progress": record.model_dump(by_alias=True)}

        if action == SyncAction.BACKUP_ALL:
            return {
                "success": True,
                "backup": {"userData": backups.collect_user_data(), "timestamp": format_timestamp(backups.clock())},
            }

        # SyncAction.RESTORE_BACKUP
        if not data:
            return _fail(400, "Backup data required")
        entries = data.get("userData", data)
        restored = 0
        for key, value in entries.items():
            if is_user_data_key(key) and isinstance(value, str):
                users.store.set(key, value)
                restored += 1
        return {"success": True, "message": "Backup restored successfully", "restored": restored}
    except MathsMayhemError as exc:
        log.error("user-data %s failed: %s", action.value, exc)
        return _fail(exc.status_code, exc.detail)
    except Exception as exc:
        log.exception("user-data %s failed", action.value)
        return JSONResponse(
            {"success": False, "error": "Internal server error", "details": str(exc)},
            status_code=500,
        )
