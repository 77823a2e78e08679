"""
Triage Controllers (API Routes)
================================

FastAPI routes that feed messenger traffic into the triage pipeline.

Controllers delegate to application services held in ``app.state``.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Request, status

from support_relay.shared.infrastructure.logging import get_context_logger
from support_relay.triage.application import (
    IncomingMessageRequest,
    TriageResponse,
    TicketDTO,
    ITicketRepository,
    TriageOrchestrator,
)

router = APIRouter(prefix="/relay", tags=["Message Relay"])


# ========== Example payloads for Swagger ==========

MESSAGE_REQUEST_EXAMPLE = {
    "user_id": "12345",
    "display_name": "Alex",
    "text": "How do I install the desktop client?",
    "language_code": "en",
    "messenger": "telegram"
}

TRIAGE_RESPONSE_EXAMPLE = {
    "outcome": "ticket_forwarded",
    "ticket_id": 42,
    "reply_text": "Thank you for contacting us.\n",
    "forwarded_to_staff": True,
    "processing_time_ms": 12
}


# ========== Dependencies ==========

def get_orchestrator(request: Request) -> TriageOrchestrator:
    """Get the triage orchestrator built at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Triage pipeline not available - relay configuration not loaded"
        )
    return orchestrator


def get_ticket_repository(request: Request) -> ITicketRepository:
    tickets = getattr(request.app.state, "ticket_repository", None)
    if tickets is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ticket repository not available"
        )
    return tickets


# ========== Route Handlers ==========

@router.post(
    "/messages",
    response_model=TriageResponse,
    summary="Triage an incoming user message",
    description="""
    Run a user message through the triage pipeline:

    1. **Spam check** - too many messages in the window are rejected
    2. **FAQ** - a matching canned answer is sent back
    3. **LLM** - when enabled, the knowledge base may answer
    4. **Ticket** - otherwise the message is forwarded to staff as a ticket
    """,
    responses={
        200: {
            "description": "Message triaged",
            "content": {"application/json": {"example": TRIAGE_RESPONSE_EXAMPLE}}
        },
        503: {"description": "Relay configuration not loaded"}
    }
)
async def receive_message(
    request: Request,
    payload: IncomingMessageRequest,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator)
) -> TriageResponse:
    correlation_id = getattr(request.state, "correlation_id", None)
    logger = get_context_logger(__name__, correlation_id)

    start_time = time.perf_counter()
    result = await orchestrator.handle(payload.to_domain())
    processing_time_ms = int((time.perf_counter() - start_time) * 1000)

    logger.info(
        "Message triaged",
        extra={
            "user_id": payload.user_id,
            "messenger": payload.messenger,
            "outcome": result.outcome.value,
            "processing_time_ms": processing_time_ms
        }
    )

    return TriageResponse.from_result(result, processing_time_ms)


@router.get(
    "/tickets/{messenger}/{user_id}",
    response_model=TicketDTO,
    summary="Get the open ticket of a user",
    responses={404: {"description": "User has no open ticket"}}
)
async def get_open_ticket(
    messenger: str,
    user_id: str,
    tickets: ITicketRepository = Depends(get_ticket_repository)
) -> TicketDTO:
    ticket = await tickets.get_ticket_by_user_id(user_id, messenger)
    if ticket is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No open ticket for user '{user_id}' on {messenger}"
        )
    return TicketDTO.from_domain(ticket)
