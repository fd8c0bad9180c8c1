"""Document Service - Runs document/PDF generation under a hard timeout

Rendering itself belongs to an external collaborator; this module only owns
the trigger and the timeout contract. A timed-out submission is never retried
here, the user resubmits.
"""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Optional

from ..domain.errors import DomainError, DocumentGenerationError, DocumentGenerationTimeoutError
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Receives the submission payload, returns {document name: stored reference}
DocumentRenderer = Callable[[Dict[str, Any]], Dict[str, str]]


class DocumentGenerator:
    """Invoke the document renderer with a timeout"""
    
    def __init__(
        self,
        renderer: Optional[DocumentRenderer] = None,
        timeout_seconds: Optional[float] = None
    ):
        self._renderer = renderer
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.document_generation_timeout_seconds
        )
    
    def generate(self, payload: Dict[str, Any]) -> Dict[str, str]:
        """
        Render documents for a submission
        
        Raises:
            DocumentGenerationTimeoutError: renderer exceeded the timeout
            DocumentGenerationError: renderer failed
        """
        if self._renderer is None:
            return {}
        
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="doc-render")
        future = executor.submit(self._renderer, payload)
        try:
            documents = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.error(f"Document generation timed out after {self.timeout_seconds}s")
            raise DocumentGenerationTimeoutError(
                "Document generation timed out. Please submit your application again.",
                details={"timeout_seconds": self.timeout_seconds}
            )
        except DomainError:
            raise
        except Exception as e:
            logger.error(f"Document generation failed: {e}", exc_info=True)
            raise DocumentGenerationError(
                "Document generation failed",
                details={"reason": str(e)}
            ) from e
        finally:
            # Never block the request on a runaway renderer
            executor.shutdown(wait=False)
        
        return dict(documents or {})
