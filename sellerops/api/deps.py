from typing import Annotated, Optional
import logging

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.database import get_db
from sellerops.services.sync_service import MarketplaceSyncService

logger = logging.getLogger(__name__)


def get_http_client(request: Request) -> Optional[httpx.AsyncClient]:
    """Process-wide marketplace HTTP client created in the app lifespan."""
    return getattr(request.app.state, "http_client", None)


DB = Annotated[AsyncSession, Depends(get_db)]
HttpClient = Annotated[Optional[httpx.AsyncClient], Depends(get_http_client)]


def get_sync_service(db: DB, http_client: HttpClient) -> MarketplaceSyncService:
    return MarketplaceSyncService(db, http_client=http_client)


SyncService = Annotated[MarketplaceSyncService, Depends(get_sync_service)]
