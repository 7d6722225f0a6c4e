from typing import Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from fiscalai.core.database import get_database
from fiscalai.core.repository import BaseRepository
from .models import FiscalIntegrationStatusInDB, FiscalIntegrationStatusUpsert


class FiscalIntegrationStatusRepository(BaseRepository[FiscalIntegrationStatusInDB]):
    model = FiscalIntegrationStatusInDB
    collection_name = "fiscal_integration_status"

    async def get_for_company(self, company_id: str) -> Optional[FiscalIntegrationStatusInDB]:
        return await self.get_by({"company_id": company_id})

    async def upsert_for_company(
        self, company_id: str, data: FiscalIntegrationStatusUpsert
    ) -> FiscalIntegrationStatusInDB:
        """Um registro por empresa: cria na primeira verificação, sobrescreve nas seguintes."""
        return await self.upsert_by_key({"company_id": company_id}, data)


async def get_fiscal_status_repository(
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> FiscalIntegrationStatusRepository:
    return FiscalIntegrationStatusRepository(db)
