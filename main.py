import argparse
import logging
import uvicorn
from fastapi import FastAPI, Depends
from contextlib import asynccontextmanager

import sys
from pathlib import Path

# Add project root to path for package imports
base_dir = Path(__file__).parent
sys.path.insert(0, str(base_dir))

from config import load_config
from dependencies import get_backup_manager, get_backup_store, get_store, get_sync_client, get_user_manager
from routes import auth, user_data, backups, chat  # Import routers
from store.keys import CURRENT_VERSION
from utils.migration import MigrationRunner
from utils.scheduler import start_periodic

log = logging.getLogger("mathsmayhem")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def startup(config: dict):
    """Open the store, bring its data up to the current version and prune backups."""
    store = get_store()
    backup_manager = get_backup_manager(store, get_backup_store())
    runner = MigrationRunner(
        store,
        backup_manager,
        migrate_without_user=config["migration"]["migrate_without_user"],
    )
    outcome = runner.run()
    log.info("Data version %s check: %s", CURRENT_VERSION, outcome.value)
    backup_manager.clean_old_backups()
    return store, backup_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: config, store, migrations, periodic backup and sync loops
    config = load_config()
    configure_logging(config["logging"]["level"])
    store, backup_manager = startup(config)
    users = get_user_manager(store, get_sync_client())

    async def sync_current_user():
        username = users.get_current_user()
        if username:
            await users.backup_user_data(username)

    tasks = [
        start_periodic(config["backup"]["interval_hours"] * 3600, backup_manager.run_backup_cycle, "daily-backup"),
        start_periodic(config["sync"]["interval_seconds"], sync_current_user, "auto-sync"),
    ]
    log.info("Data migration system initialized")
    yield
    for task in tasks:
        task.cancel()


app = FastAPI(title="MathsMayhem", description="Maths practice with local-first user data", lifespan=lifespan)

# Include routers
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(user_data.router, prefix="/api", tags=["user-data"])
app.include_router(chat.router, prefix="/api", tags=["tutor"])
app.include_router(backups.router, prefix="/admin", tags=["admin"])


@app.get("/")
async def home(users=Depends(get_user_manager)):
    return {"app": "MathsMayhem", "version": CURRENT_VERSION, "currentUser": users.get_current_user()}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="MathsMayhem App")
    parser.add_argument("--init", action="store_true", help="Initialize config and store, run migrations")
    parser.add_argument("--dev", action="store_true", help="Run in dev mode with reload")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    if args.init:
        config = load_config()  # Ensures config is copied if missing
        configure_logging(config["logging"]["level"])
        startup(config)
        print("Store initialized and config copied to ~/.mathsmayhem/")
        exit(0)
    # Run server
    uvicorn.run("main:app", host="127.0.0.1", port=args.port, reload=args.dev, log_level="info")
