"""
Profile Directory API Server

FastAPI server exposing the profile directory operations.
The calling participant is identified by the X-Agent-Pubkey header.

Endpoints:
- POST /api/v1/profiles - Publish the caller's profile
- GET /api/v1/profiles - List every indexed profile
- GET /api/v1/profiles/search?prefix= - Search by nickname prefix (>= 3 chars)
- GET /api/v1/profiles/me - Caller's own profile
- GET /api/v1/profiles/{identity} - Profile of an identity
- POST /api/v1/profiles/batch - Profiles of several identities

License: MIT
"""

import asyncio
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Query, status
from pydantic import BaseModel, Field
from loguru import logger

from profiledir.backends import MemoryBackend, SqliteBackend
from profiledir.core.config import DirectoryConfig
from profiledir.core.directory import DirectoryService
from profiledir.core.errors import InvalidNickname, PrefixTooShort, StoreError
from profiledir.core.models import AnnotatedProfile, Profile
from profiledir.core.store import AddressableStore


# =============================================================================
# Configuration
# =============================================================================

class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(
        default="127.0.0.1",
        description="Server host (set via PROFILEDIR_API_HOST env var)"
    )
    port: int = Field(default=8002, description="Server port")
    backend: str = Field(default="sqlite", description="Store backend (sqlite, memory)")
    db_path: Path = Field(
        default=Path("./profiledir.db"),
        description="SQLite database file"
    )


# =============================================================================
# API Models
# =============================================================================

class ProfileModel(BaseModel):
    """Profile as sent and returned over the API."""

    nickname: str = Field(..., description="Display nickname")
    fields: Dict[str, str] = Field(default_factory=dict, description="Free-form profile fields")


class AgentProfileResponse(BaseModel):
    """Profile paired with the identity that published it."""

    identity: str
    profile: ProfileModel


class BatchRequest(BaseModel):
    """Identities to look up."""

    identities: List[str] = Field(..., description="Agent public keys")


def to_response(agent_profile: AnnotatedProfile) -> AgentProfileResponse:
    return AgentProfileResponse(
        identity=agent_profile.identity,
        profile=ProfileModel(
            nickname=agent_profile.profile.nickname,
            fields=dict(agent_profile.profile.fields),
        ),
    )


# =============================================================================
# Global State
# =============================================================================

class AppState:
    """Application state."""

    def __init__(self):
        self.config: Optional[ServerConfig] = None
        self.store: Optional[AddressableStore] = None
        self.directory_config: Optional[DirectoryConfig] = None

    async def initialize(self, config: ServerConfig):
        """Initialize application state."""
        self.config = config

        if config.backend == "memory":
            self.store = MemoryBackend()
        elif config.backend == "sqlite":
            self.store = SqliteBackend(db_path=config.db_path)
        else:
            raise ValueError(f"Unknown store backend: {config.backend}")

        self.directory_config = DirectoryConfig.from_env()

        logger.info("Profile directory initialized")
        logger.info("   Backend: {}", config.backend)
        if config.backend == "sqlite":
            logger.info("   Database: {}", config.db_path)
        logger.info("   Republish policy: {}", self.directory_config.republish_policy.value)

    def directory_for(self, identity: str) -> DirectoryService:
        """Directory service acting for one caller."""
        return DirectoryService(self.store, identity, self.directory_config)

    async def shutdown(self):
        """Cleanup resources."""
        logger.info("Profile directory API server shutdown complete")


# Global app state
app_state = AppState()

# Identity used for read-only calls that carry no caller header
ANONYMOUS = "anonymous"


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    config = ServerConfig(
        backend=os.getenv("PROFILEDIR_BACKEND", "sqlite").lower(),
        db_path=Path(os.getenv("PROFILEDIR_DB_PATH", "./profiledir.db")),
        port=int(os.getenv("PROFILEDIR_API_PORT", "8002")),
    )
    await app_state.initialize(config)

    yield

    await app_state.shutdown()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Profile Directory API",
    description="Profile publication, lookup and prefix search over a content-addressed store",
    version="1.0.0",
    lifespan=lifespan,
)


def require_identity(x_agent_pubkey: Optional[str]) -> str:
    if not x_agent_pubkey:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Agent-Pubkey header"
        )
    return x_agent_pubkey


def store_unavailable(e: StoreError) -> HTTPException:
    logger.error("Store failure: {}", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Store unavailable: {e}"
    )


# =============================================================================
# Health
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "profiledir-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store_initialized": app_state.store is not None,
    }


# =============================================================================
# Profiles
# =============================================================================

@app.post(
    "/api/v1/profiles",
    response_model=AgentProfileResponse,
    status_code=status.HTTP_201_CREATED,
)
async def publish_profile(
    profile: ProfileModel,
    x_agent_pubkey: Optional[str] = Header(default=None),
):
    """
    Publish the caller's profile.

    A failed publish may have been partially applied; retrying is safe.
    """
    identity = require_identity(x_agent_pubkey)
    directory = app_state.directory_for(identity)

    try:
        published = await asyncio.to_thread(
            directory.publish,
            Profile(nickname=profile.nickname, fields=dict(profile.fields)),
        )
    except InvalidNickname as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        raise store_unavailable(e)

    logger.info("Published profile {} for {}", profile.nickname, identity[:12])
    return to_response(published)


@app.get("/api/v1/profiles", response_model=List[AgentProfileResponse])
async def list_profiles():
    """List every indexed profile."""
    directory = app_state.directory_for(ANONYMOUS)
    try:
        profiles = await asyncio.to_thread(directory.list_all)
    except StoreError as e:
        raise store_unavailable(e)
    return [to_response(p) for p in profiles]


@app.get("/api/v1/profiles/search", response_model=List[AgentProfileResponse])
async def search_profiles(prefix: str = Query(..., description="Nickname prefix, at least 3 characters")):
    """Search profiles by nickname prefix."""
    directory = app_state.directory_for(ANONYMOUS)
    try:
        profiles = await asyncio.to_thread(directory.search, prefix)
    except PrefixTooShort as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        raise store_unavailable(e)
    return [to_response(p) for p in profiles]


@app.get("/api/v1/profiles/me", response_model=AgentProfileResponse)
async def get_my_profile(x_agent_pubkey: Optional[str] = Header(default=None)):
    """Caller's own profile."""
    identity = require_identity(x_agent_pubkey)
    directory = app_state.directory_for(identity)
    try:
        profile = await asyncio.to_thread(directory.get_my_profile)
    except StoreError as e:
        raise store_unavailable(e)

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No profile published for caller"
        )
    return to_response(profile)


@app.post("/api/v1/profiles/batch", response_model=List[AgentProfileResponse])
async def get_profiles_batch(request: BatchRequest):
    """Profiles of several identities; identities without one are omitted."""
    directory = app_state.directory_for(ANONYMOUS)
    try:
        profiles = await asyncio.to_thread(directory.get_many_by_identity, request.identities)
    except StoreError as e:
        raise store_unavailable(e)
    return [to_response(p) for p in profiles]


@app.get("/api/v1/profiles/{identity}", response_model=AgentProfileResponse)
async def get_agent_profile(identity: str):
    """Profile published by an identity."""
    directory = app_state.directory_for(ANONYMOUS)
    try:
        profile = await asyncio.to_thread(directory.get_by_identity, identity)
    except StoreError as e:
        raise store_unavailable(e)

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No profile for {identity}"
        )
    return to_response(profile)


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Run API server."""
    logger.add(
        "logs/profiledir_api_{time}.log",
        rotation="1 day",
        retention="30 days",
        level="INFO"
    )

    host = os.getenv("PROFILEDIR_API_HOST", "127.0.0.1")
    port = int(os.getenv("PROFILEDIR_API_PORT", "8002"))
    reload = os.getenv("RELOAD", "false").lower() == "true"

    logger.info("Starting Profile Directory API server on {}:{}", host, port)
    logger.info("   Backend: {}", os.getenv("PROFILEDIR_BACKEND", "sqlite"))
    logger.info("   Database: {}", os.getenv("PROFILEDIR_DB_PATH", "./profiledir.db"))

    uvicorn.run(
        "profiledir.api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
