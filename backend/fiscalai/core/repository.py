# fiscalai/core/repository.py

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from bson import ObjectId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from pymongo.results import InsertOneResult, UpdateResult

from fiscalai.core.errors import ConflictError

ModelType = TypeVar("ModelType", bound=BaseModel)  # Modelo Pydantic que representa o doc DB


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository(Generic[ModelType]):
    """Repositório base para coleções MongoDB com Motor e Pydantic."""

    model: Type[ModelType]
    collection_name: str

    def __init__(self, db: AsyncIOMotorDatabase):
        if not getattr(self, "collection_name", None):
            raise AttributeError("Repository subclass must define a 'collection_name'")
        if not getattr(self, "model", None) or not issubclass(self.model, BaseModel):
            raise AttributeError("Repository subclass must define a Pydantic 'model'")

        self.db = db
        self.collection: AsyncIOMotorCollection = db[self.collection_name]

    @staticmethod
    def _to_objectid(id_str: Any) -> Optional[ObjectId]:
        """Converte input para ObjectId, retornando None se inválido."""
        if isinstance(id_str, ObjectId):
            return id_str
        if isinstance(id_str, str) and ObjectId.is_valid(id_str):
            return ObjectId(id_str)
        return None

    def _handle_db_exception(self, e: Exception, operation: str, doc_id: Any = None, query: Optional[Dict] = None):
        """Loga e levanta exceções de banco de dados padronizadas."""
        context = f"op='{operation}' coll='{self.collection_name}'"
        if doc_id:
            context += f" id='{doc_id}'"
        if query:
            context += f" query='{str(query)[:100]}'"

        if isinstance(e, DuplicateKeyError):
            dup_key_info = e.details.get("keyValue", {}) if e.details else {}
            logger.error(f"DB Error during {context} - Duplicate Key: {dup_key_info}")
            raise ConflictError(
                f"Registro duplicado: {', '.join(dup_key_info.keys()) or 'chave única'}",
                code="DUPLICATE_KEY",
            ) from e
        logger.exception(f"DB Error during {context}: {e}")
        raise RuntimeError(f"Database error during operation: {operation}") from e

    def _prepare_data_for_db(self, data: Dict) -> Dict:
        """Decimal vira string e Enum vira seu valor antes de ir para o Mongo."""
        prepared = {}
        for key, value in data.items():
            if isinstance(value, Decimal):
                prepared[key] = str(value)
            elif isinstance(value, Enum):
                prepared[key] = value.value
            elif isinstance(value, dict):
                prepared[key] = self._prepare_data_for_db(value)
            else:
                prepared[key] = value
        return prepared

    @staticmethod
    def _as_dict(data_in: BaseModel | Dict, exclude_unset: bool) -> Dict:
        if isinstance(data_in, BaseModel):
            return data_in.model_dump(exclude_unset=exclude_unset, by_alias=False)
        return dict(data_in)

    def _validate(self, document: Optional[Dict]) -> Optional[ModelType]:
        return self.model.model_validate(document) if document else None

    async def get_by_id(self, id: str | ObjectId) -> Optional[ModelType]:
        obj_id = self._to_objectid(id)
        if not obj_id:
            return None
        try:
            document = await self.collection.find_one({"_id": obj_id})
        except Exception as e:
            self._handle_db_exception(e, "get_by_id", obj_id)
        return self._validate(document)

    async def get_by(self, query: Dict[str, Any]) -> Optional[ModelType]:
        """Busca o PRIMEIRO documento que corresponde a um critério."""
        try:
            document = await self.collection.find_one(query)
        except Exception as e:
            self._handle_db_exception(e, "get_by", query=query)
        return self._validate(document)

    async def list_by(
        self,
        query: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
        sort: Optional[List[Tuple[str, int]]] = None,
    ) -> List[ModelType]:
        """Lista documentos com base em critérios, paginação e ordenação."""
        query = query or {}
        try:
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(sort)
            cursor = cursor.skip(max(0, skip))
            if limit > 0:
                cursor = cursor.limit(limit)
            documents = await cursor.to_list(length=limit if limit > 0 else None)
        except Exception as e:
            self._handle_db_exception(e, "list_by", query=query)
        return [self.model.model_validate(doc) for doc in documents]

    async def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        try:
            return await self.collection.count_documents(query or {})
        except Exception as e:
            self._handle_db_exception(e, "count", query=query)

    async def create(self, data_in: BaseModel | Dict) -> ModelType:
        data = self._prepare_data_for_db(self._as_dict(data_in, exclude_unset=False))
        now = utcnow()
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)
        data.pop("_id", None)
        data.pop("id", None)

        try:
            result: InsertOneResult = await self.collection.insert_one(data)
            created = await self.collection.find_one({"_id": result.inserted_id})
        except Exception as e:
            self._handle_db_exception(e, "create")
        if created is None:
            logger.critical(f"CRITICAL: Failed to retrieve document after insertion! Collection: {self.collection_name}")
            raise RuntimeError("Failed to retrieve document after creation.")
        logger.debug(f"Document created in '{self.collection_name}': {result.inserted_id}")
        return self.model.model_validate(created)

    async def update(self, id: str | ObjectId, data_in: BaseModel | Dict) -> Optional[ModelType]:
        """Atualiza um documento existente usando $set."""
        obj_id = self._to_objectid(id)
        if not obj_id:
            return None

        data = self._prepare_data_for_db(self._as_dict(data_in, exclude_unset=True))
        for field in ("_id", "id", "created_at"):
            data.pop(field, None)
        if not data:
            return await self.get_by_id(obj_id)
        data["updated_at"] = utcnow()

        try:
            result: UpdateResult = await self.collection.update_one({"_id": obj_id}, {"$set": data})
        except Exception as e:
            self._handle_db_exception(e, "update", obj_id)
        if result.matched_count == 0:
            logger.warning(f"Document not found for update: ID {id}, Collection: {self.collection_name}")
            return None
        return await self.get_by_id(obj_id)

    async def upsert_by_key(
        self, key: Dict[str, Any], data_in: BaseModel | Dict, exclude_unset: bool = True
    ) -> ModelType:
        """Insere ou atualiza atomicamente o documento identificado pela chave natural.

        Uma única operação ``find_one_and_update(upsert=True)``: duas chamadas
        concorrentes com a mesma chave nunca produzem dois documentos (com o
        índice único da chave, a perdedora da corrida recebe DuplicateKeyError
        e é repetida como update).
        """
        data = self._prepare_data_for_db(self._as_dict(data_in, exclude_unset=exclude_unset))
        for field in ("_id", "id", "created_at", *key.keys()):
            data.pop(field, None)
        now = utcnow()
        data["updated_at"] = now
        # Campos da chave entram no documento novo a partir do próprio filtro
        update = {"$set": data, "$setOnInsert": {"created_at": now}}

        for attempt in (1, 2):
            try:
                document = await self.collection.find_one_and_update(
                    key, update, upsert=True, return_document=ReturnDocument.AFTER
                )
                break
            except DuplicateKeyError:
                # Outra requisição inseriu a mesma chave entre o find e o insert do upsert
                if attempt == 2:
                    raise ConflictError("Registro duplicado", code="DUPLICATE_KEY")
                logger.debug(f"Upsert race on {self.collection_name} key={key}; retrying as update.")
            except Exception as e:
                self._handle_db_exception(e, "upsert_by_key", query=key)
        if document is None:
            raise RuntimeError(f"Upsert returned no document for key {key}")
        return self.model.model_validate(document)
