from typing import List, Optional, Tuple

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from fiscalai.core.database import get_database
from fiscalai.core.repository import BaseRepository, utcnow
from .models import CompanyInDB


class CompanyRepository(BaseRepository[CompanyInDB]):
    model = CompanyInDB
    collection_name = "companies"

    async def list_companies(self, skip: int = 0, limit: int = 100) -> Tuple[List[CompanyInDB], int]:
        companies = await self.list_by(skip=skip, limit=limit, sort=[("razao_social", ASCENDING)])
        return companies, await self.count()

    async def mark_registered(self, company_id: str, nuvem_fiscal_id: str) -> Optional[CompanyInDB]:
        """Grava o id do provedor apenas se ainda não houver um.

        Retorna None quando a empresa não existe ou já estava registrada.
        """
        obj_id = self._to_objectid(company_id)
        if not obj_id:
            return None
        now = utcnow()
        try:
            document = await self.collection.find_one_and_update(
                {"_id": obj_id, "nuvem_fiscal_id": None},
                {"$set": {"nuvem_fiscal_id": nuvem_fiscal_id, "nuvem_fiscal_registered_at": now, "updated_at": now}},
                return_document=ReturnDocument.AFTER,
            )
        except Exception as e:
            self._handle_db_exception(e, "mark_registered", obj_id)
        return self._validate(document)


async def get_company_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> CompanyRepository:
    return CompanyRepository(db)
