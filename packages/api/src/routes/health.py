# This project was developed with assistance from AI tools.
"""Health check route."""

import logging

from db import get_db
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import __version__

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthItem(BaseModel):
    name: str
    status: str
    message: str = ""
    version: str | None = None


@router.get("/", response_model=list[HealthItem])
async def health(session: AsyncSession = Depends(get_db)) -> list[HealthItem]:
    """API and database status."""
    items = [
        HealthItem(name="API", status="healthy", message="API is running", version=__version__)
    ]
    try:
        await session.execute(text("SELECT 1"))
        dialect = session.get_bind().dialect.name
        items.append(HealthItem(name="Database", status="healthy", message=f"{dialect} reachable"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        items.append(HealthItem(name="Database", status="unhealthy", message=str(exc)))
    return items
