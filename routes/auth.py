import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from dependencies import get_sync_client, get_user_manager
from models.user import Credentials
from utils.auth import (
    SESSION_COOKIE_NAME,
    create_session_cookie,
    get_session_minutes,
    get_session_secret,
    verify_session_cookie,
)
from utils.errors import InputMissing, Conflict, NotFound, StorageFailure, Unauthorized
from utils.sync import RemoteSyncClient
from utils.users import UserManager

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register")
async def register(body: Credentials, users: UserManager = Depends(get_user_manager)):
    """Create a user; 400 on missing fields, 409 when the username is taken."""
    try:
        user = await users.register(body.username, body.password, body.email)
    except (InputMissing, Conflict) as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    except StorageFailure as exc:
        log.error("Registration of %s failed: %s", body.username, exc)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return {"message": "User registered successfully!", "user": user.model_dump(by_alias=True)}


@router.post("/login")
async def login(body: Credentials, users: UserManager = Depends(get_user_manager)):
    try:
        user = await users.login(body.username, body.password)
    except InputMissing as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    except (NotFound, Unauthorized):
        # Unknown user and wrong password look the same from outside
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    except StorageFailure as exc:
        log.error("Login of %s failed: %s", body.username, exc)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    duration = get_session_minutes()
    response = JSONResponse({"message": "Login successful", "user": user.model_dump(by_alias=True)})
    response.set_cookie(
        SESSION_COOKIE_NAME,
        create_session_cookie(user.username, duration, get_session_secret()),
        max_age=duration * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/logout")
async def logout(users: UserManager = Depends(get_user_manager)):
    username = await users.logout()
    response = JSONResponse({"message": "Logged out", "username": username})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@router.get("/session")
async def session_status(
    request: Request,
    users: UserManager = Depends(get_user_manager),
    sync: RemoteSyncClient = Depends(get_sync_client),
):
    session_user = verify_session_cookie(request.cookies.get(SESSION_COOKIE_NAME), get_session_secret())
    return {
        "currentUser": users.get_current_user(),
        "sessionUser": session_user,
        "syncStatus": sync.status.value,
    }
