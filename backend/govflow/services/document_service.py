"""Document Service - Document state changes in the document management system"""
from typing import Any, Dict, Optional
import httpx

from ..domain.errors import DocumentServiceError
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DocumentService:
    """
    Client for the document management system (DMS)

    Only the state-change call is needed by workflow actions.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = (base_url if base_url is not None else settings.dms_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.dms_api_key
        self.timeout = timeout or settings.webhook_timeout_seconds
        self._transport = transport

    def update_document_state(self, doc_ref: str, new_state: str, actor: str) -> Dict[str, Any]:
        """
        Move a document to a new state

        Raises:
            DocumentServiceError: DMS not configured, unreachable or rejected the call
        """
        if not self.base_url:
            raise DocumentServiceError(
                "Document service is not configured",
                details={"doc_ref": doc_ref}
            )

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/documents/{doc_ref}/state",
                    headers=headers,
                    json={"state": new_state, "actor": actor}
                )
        except httpx.HTTPError as e:
            logger.error(f"DMS call failed for {doc_ref}: {e}")
            raise DocumentServiceError(
                f"Document service unreachable: {e}",
                details={"doc_ref": doc_ref}
            )

        if response.status_code >= 400:
            logger.error(f"DMS error: {response.status_code} - {response.text[:200]}")
            raise DocumentServiceError(
                f"Document service returned {response.status_code}",
                details={"doc_ref": doc_ref, "status_code": response.status_code}
            )

        logger.info(f"Document {doc_ref} moved to {new_state}", extra={"actor": actor})
        if response.content and response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return {}
