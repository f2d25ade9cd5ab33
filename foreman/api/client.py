"""
Work Order Backend Client - Async HTTP access to the work order service

Every call either returns a validated response model or raises
BackendError (non-2xx status, timeout, transport failure, malformed body).

Requires: httpx>=0.25.0
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config.models import BackendConfig
from .schemas import (
    ChatQueryRequest, FeedbackRequest, WorkOrderFeedbackRequest, AgenticRagRequest,
    WorkOrderStartResponse, FeedbackResponse, AgenticRagResponse, FeedbackHistoryResponse
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class BackendError(Exception):
    """A backend call failed; the caller's state must stay unchanged"""

    def __init__(self, message: str, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.path = path


class WorkOrderBackend:
    """
    Client for the work order service.

    Endpoints:
    - POST /chat/query                 start a work order
    - POST /workorders/{wo}/resume     resume from saved progress
    - POST /workorders/{wo}/restart    reset progress and start over
    - POST /chat/feedback              step feedback addressed by session and step number
    - POST /workorders/{id}/feedback   step feedback addressed by step id (resumed sessions)
    - GET  /workorders/{id}/feedback   feedback history
    - POST /agentic-rag/query          general questions
    """

    def __init__(self, config: BackendConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        headers = {"Accept": "application/json"}
        if config.auth_token:
            headers["Authorization"] = f"Bearer {config.auth_token}"
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers=headers,
        )
        if client is not None:
            self._client.headers.update(headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "WorkOrderBackend":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------
    # Work order lifecycle
    # ------------------------------------------------------------

    async def start_work_order(self, work_order_id: str, user_id: int,
                               input_type: str = "text") -> WorkOrderStartResponse:
        request = ChatQueryRequest(query=f"help me fix {work_order_id}", user_id=user_id, type=input_type)
        return await self._request("POST", "/chat/query", WorkOrderStartResponse, json=request.model_dump())

    async def resume_work_order(self, work_order_id: str, user_id: int) -> WorkOrderStartResponse:
        return await self._request("POST", f"/workorders/{work_order_id}/resume",
                                   WorkOrderStartResponse, json={"user_id": user_id})

    async def restart_work_order(self, work_order_id: str, user_id: int) -> WorkOrderStartResponse:
        return await self._request("POST", f"/workorders/{work_order_id}/restart",
                                   WorkOrderStartResponse, json={"user_id": user_id})

    # ------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------

    async def submit_feedback(self, session_id: str, step_number: int, feedback: str,
                              notes: str, user_id: int) -> FeedbackResponse:
        request = FeedbackRequest(session_id=session_id, step_number=step_number,
                                  feedback=feedback, notes=notes, user_id=user_id)
        return await self._request("POST", "/chat/feedback", FeedbackResponse, json=request.model_dump())

    async def submit_work_order_feedback(self, backend_work_order_id: int, step_id: int,
                                         feedback_text: str, time_spent: float) -> FeedbackResponse:
        request = WorkOrderFeedbackRequest(step_id=step_id, feedback_text=feedback_text, time_spent=time_spent)
        return await self._request("POST", f"/workorders/{backend_work_order_id}/feedback",
                                   FeedbackResponse, json=request.model_dump())

    async def get_feedback_history(self, backend_work_order_id: int) -> FeedbackHistoryResponse:
        return await self._request("GET", f"/workorders/{backend_work_order_id}/feedback",
                                   FeedbackHistoryResponse)

    # ------------------------------------------------------------
    # General questions
    # ------------------------------------------------------------

    async def query_general(self, text: str) -> str:
        """Ask the knowledge service; returns the answer text"""
        response = await self._request("POST", "/agentic-rag/query", AgenticRagResponse,
                                       json=AgenticRagRequest(query=text).model_dump())
        logger.debug(f"Agentic RAG answered via route '{response.route}'")
        return response.answer

    # ------------------------------------------------------------

    async def _request(self, method: str, path: str, model: Type[ResponseT],
                       json: Optional[Dict[str, Any]] = None) -> ResponseT:
        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise BackendError(f"Request to {path} timed out", path=path) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Request to {path} failed: {e}", path=path) from e

        if response.is_error:
            raise BackendError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code, path=path
            )

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError(f"Malformed response from {path}: {e}",
                               status_code=response.status_code, path=path) from e
