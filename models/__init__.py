from .user import UserRecord, PublicUser, Credentials
from .subscription import SubscriptionRecord
from .progress import ProgressRecord
from .backup import BackupRecord, BackupSummary, BackupResult, MigrationLogEntry
from .sync import SyncAction, SyncStatus, SyncRequest

__all__ = [
    'UserRecord', 'PublicUser', 'Credentials', 'SubscriptionRecord', 'ProgressRecord',
    'BackupRecord', 'BackupSummary', 'BackupResult', 'MigrationLogEntry',
    'SyncAction', 'SyncStatus', 'SyncRequest',
]
