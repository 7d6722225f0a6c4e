from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from fiscalai.core.database import get_database
from fiscalai.core.repository import BaseRepository
from .models import InvoiceCreateInternal, InvoiceInDB, InvoiceStatus, InvoiceUpdateInternal


class InvoiceRepository(BaseRepository[InvoiceInDB]):
    model = InvoiceInDB
    collection_name = "invoices"

    async def get_by_number(self, numero: str, company_id: Optional[str] = None) -> Optional[InvoiceInDB]:
        """Nota pelo número. Sem empresa, só devolve quando o número não é ambíguo."""
        if company_id:
            return await self.get_by({"company_id": company_id, "numero": numero})
        matches = await self.list_by(query={"numero": numero}, limit=2)
        if len(matches) > 1:
            logger.warning(f"Invoice number {numero} exists for more than one company; specify the company.")
            return None
        return matches[0] if matches else None

    async def upsert_by_number(self, company_id: str, numero: str, data: InvoiceCreateInternal) -> InvoiceInDB:
        """Grava a nota pela chave (empresa, número). Nota em status final não é reescrita."""
        existing = await self.get_by_number(numero, company_id)
        if existing is not None and existing.status.is_terminal:
            logger.warning(
                f"Invoice {numero} of company {company_id} is already {existing.status.value}; keeping stored record."
            )
            return existing
        # Documento completo: defaults (status, iss_retido) também precisam ir para o banco
        return await self.upsert_by_key({"company_id": company_id, "numero": numero}, data, exclude_unset=False)

    async def update_status(self, invoice_id: str, data: InvoiceUpdateInternal) -> Optional[InvoiceInDB]:
        return await self.update(invoice_id, data)

    @staticmethod
    def _list_query(company_id: Optional[str], status: Optional[InvoiceStatus]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if company_id:
            query["company_id"] = company_id
        if status:
            query["status"] = status.value
        return query

    async def list_invoices(
        self,
        company_id: Optional[str] = None,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[InvoiceInDB], int]:
        """Página de notas (mais recentes primeiro) e o total do conjunto filtrado."""
        query = self._list_query(company_id, status)
        invoices = await self.list_by(query=query, skip=skip, limit=limit, sort=[("created_at", DESCENDING)])
        total = await self.count(query)
        return invoices, total


async def get_invoice_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> InvoiceRepository:
    return InvoiceRepository(db)
