from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class UserBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    email: str
    created_at: str
    last_login: Optional[str] = None


class UserRecord(UserBase):
    password: str  # pbkdf2_sha256 hash, never the plain password

    def public(self) -> "PublicUser":
        return PublicUser(**self.model_dump(exclude={"password"}))


class PublicUser(UserBase):
    pass


class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
