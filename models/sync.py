from enum import Enum
from pydantic import BaseModel
from typing import Any, Dict, Optional


class SyncAction(str, Enum):
    SAVE_USER_DATA = "save_user_data"
    LOAD_USER_DATA = "load_user_data"
    GET_USER = "get_user"
    UPDATE_SUBSCRIPTION = "update_subscription"
    UPDATE_PROGRESS = "update_progress"
    BACKUP_ALL = "backup_all"
    RESTORE_BACKUP = "restore_backup"


class SyncStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class SyncRequest(BaseModel):
    action: Optional[str] = None
    username: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
