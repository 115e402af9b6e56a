from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MigrationLogEntry(CamelModel):
    type: str
    message: str
    timestamp: str
    version: str


class BackupRecord(CamelModel):
    version: str
    timestamp: str
    user_data: Dict[str, str] = Field(default_factory=dict)
    system_data: Dict[str, Any] = Field(default_factory=dict)
    migration_log: List[MigrationLogEntry] = Field(default_factory=list)


class BackupSummary(CamelModel):
    key: str
    timestamp: str
    version: str
    size: int


class BackupResult(CamelModel):
    success: bool
    backup_key: Optional[str] = None
    error: Optional[str] = None
