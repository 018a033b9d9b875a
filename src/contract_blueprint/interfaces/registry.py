"""Document registry interface for the Contract Blueprint pipeline."""

from abc import ABC, abstractmethod
from typing import List

from ..models.document import DocumentMeta


class IDocumentRegistry(ABC):
    """
    Abstract interface for the uploaded-document registry.

    The registry owns document rows; the pipeline only reads the ordered
    document list of a batch.
    """

    @abstractmethod
    def list_documents(self, batch_id: str) -> List[DocumentMeta]:
        """
        List the documents uploaded under a batch.

        Args:
            batch_id: Temporary batch identifier.

        Returns:
            Documents in upload order; empty if the batch is unknown.
        """
        pass
