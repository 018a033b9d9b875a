"""SQLAlchemy-backed document registry."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select

from ..interfaces.registry import IDocumentRegistry
from ..models.document import DocumentMeta
from ..models.enums import AnalysisFeature
from .database import DatabaseManager
from .models import UploadedDocumentModel


logger = logging.getLogger(__name__)


class SqlDocumentRegistry(IDocumentRegistry):
    """
    Document registry over the uploaded_documents table.

    Upload handling lives elsewhere; add_document only records a file that
    is already stored so that batches can be assembled and analyzed.
    """

    def __init__(self, db_manager: DatabaseManager):
        self._db_manager = db_manager

    def _from_model(self, model: UploadedDocumentModel) -> DocumentMeta:
        features = frozenset(AnalysisFeature(f) for f in (model.features or ["text"]))
        return DocumentMeta(
            document_id=model.id,
            original_filename=model.original_filename,
            byte_size=model.byte_size,
            stored_path=model.stored_path,
            upload_timestamp=model.upload_timestamp,
            features=features,
            page_count=model.page_count,
        )

    def add_document(
        self,
        original_filename: str,
        stored_path: str,
        byte_size: int,
        batch_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        features: Iterable[AnalysisFeature] = (AnalysisFeature.TEXT,),
        page_count: Optional[int] = None,
        upload_timestamp: Optional[datetime] = None,
        document_id: Optional[str] = None,
    ) -> DocumentMeta:
        """
        Register a stored document under a batch or a contract.

        Raises:
            ValueError: Unless exactly one of batch_id and contract_id is given.
        """
        if (batch_id is None) == (contract_id is None):
            raise ValueError("A document belongs to exactly one of a batch or a contract")

        model = UploadedDocumentModel(
            id=document_id or str(uuid.uuid4()),
            batch_id=batch_id,
            contract_id=contract_id,
            original_filename=original_filename,
            stored_path=stored_path,
            byte_size=byte_size,
            page_count=page_count,
            features=sorted(f.value for f in features),
            upload_timestamp=upload_timestamp or datetime.now(timezone.utc),
        )
        with self._db_manager.get_session() as session:
            session.add(model)
            session.flush()
            meta = self._from_model(model)

        logger.debug(f"Registered {original_filename} as {meta.document_id}")
        return meta

    def list_documents(self, batch_id: str) -> List[DocumentMeta]:
        with self._db_manager.get_session() as session:
            query = (
                select(UploadedDocumentModel)
                .where(UploadedDocumentModel.batch_id == batch_id)
                .order_by(UploadedDocumentModel.upload_timestamp.asc())
            )
            models = session.execute(query).scalars().all()
            return [self._from_model(m) for m in models]

    def list_contract_documents(self, contract_id: str) -> List[DocumentMeta]:
        """Documents attached to an existing contract, in upload order."""
        with self._db_manager.get_session() as session:
            query = (
                select(UploadedDocumentModel)
                .where(UploadedDocumentModel.contract_id == contract_id)
                .order_by(UploadedDocumentModel.upload_timestamp.asc())
            )
            models = session.execute(query).scalars().all()
            return [self._from_model(m) for m in models]
