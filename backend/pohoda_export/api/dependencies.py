"""API Dependencies — per-request Pohoda client, XML builder and export service.

Design Decisions:
    - Each request gets its own httpx.AsyncClient, closed after the response;
      tests swap the whole client via app.dependency_overrides[get_pohoda_client]
    - get_export_service composes get_db + get_pohoda_client so routes ask for one thing
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pohoda_export.config import Settings, get_settings
from pohoda_export.core.build_invoice_xml import PohodaXmlBuilder
from pohoda_export.core.repository_protocols import PohodaClient
from pohoda_export.infrastructure.database import get_db
from pohoda_export.infrastructure.pohoda_client import build_pohoda_client, new_http_client
from pohoda_export.infrastructure.pohoda_schemas import load_pohoda_schema
from pohoda_export.services.export_service import PohodaExportService


async def get_pohoda_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[PohodaClient, None]:
    async with new_http_client() as http_client:
        yield build_pohoda_client(settings, http_client)


def get_xml_builder(settings: Settings = Depends(get_settings)) -> PohodaXmlBuilder:
    return PohodaXmlBuilder(load_pohoda_schema(), settings.pohoda_xml_encoding)


async def get_export_service(
    db: AsyncSession = Depends(get_db),
    client: PohodaClient = Depends(get_pohoda_client),
    builder: PohodaXmlBuilder = Depends(get_xml_builder),
    settings: Settings = Depends(get_settings),
) -> PohodaExportService:
    return PohodaExportService.from_settings(db, client, builder, settings)
