"""/v1/loans/applications - origination workflow endpoints"""

import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response

from loan_origination.api.dependencies import (
    get_application_store,
    get_plan_config,
    get_recordkeeper_client,
    get_request_id,
)
from loan_origination.api.v1.schemas import (
    AllocationPatch,
    ApplicationResponse,
    AttachDocumentsRequest,
    BasicsPatch,
    CalculationResponse,
    CompliancePatch,
    GoToStageRequest,
    PaymentPatch,
    StartApplicationRequest,
)
from loan_origination.domain import workflow
from loan_origination.domain.exceptions import (
    ApplicationConflictError,
    ApplicationNotFoundError,
    StepBlockedError,
    WorkflowStateError,
)
from loan_origination.domain.models import STAGE_ORDER, PlanConfig, Stage, WorkflowState
from loan_origination.domain.validation import required_documents
from loan_origination.infrastructure.clients.recordkeeper import RecordkeeperClient
from loan_origination.infrastructure.observability.logging import log_submission, log_transition
from loan_origination.infrastructure.observability.metrics import (
    blocked_advance_counter,
    record_application_started,
    record_submission,
    record_transition,
)
from loan_origination.infrastructure.store import InMemoryApplicationStore

router = APIRouter()


def _to_response(state: WorkflowState) -> ApplicationResponse:
    errors = [] if state.stage == Stage.CONFIRMED else workflow.can_advance(state)
    basics = state.draft.basics
    documents = required_documents(
        basics.purpose if basics else None,
        state.config.requires_spousal_consent,
        state.participant.is_married,
    )
    return ApplicationResponse.from_state(state, errors=errors, required_documents=documents)


def _load(store: InMemoryApplicationStore, application_id: str) -> WorkflowState:
    try:
        return store.get(application_id)
    except ApplicationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _apply(
    store: InMemoryApplicationStore,
    application_id: str,
    request_id: str,
    mutation: Callable[[WorkflowState], WorkflowState],
) -> WorkflowState:
    """Run a workflow function against the stored state and persist the result atomically"""
    try:
        state, next_state = store.update(application_id, mutation)

    except ApplicationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except StepBlockedError as e:
        blocked_advance_counter.labels(stage=e.stage).inc()
        logging.info(f"Advance blocked: {e}", extra={"request_id": request_id, "application_id": application_id})
        raise HTTPException(status_code=422, detail={"errors": e.errors})

    except (WorkflowStateError, ApplicationConflictError) as e:
        logging.warning(f"Invalid workflow operation: {e}", extra={"request_id": request_id, "application_id": application_id})
        raise HTTPException(status_code=409, detail=str(e))

    if next_state.stage != state.stage:
        moved_forward = STAGE_ORDER.index(next_state.stage) > STAGE_ORDER.index(state.stage)
        direction = "forward" if moved_forward else "backward"
        record_transition(state.stage.value, next_state.stage.value, direction)
        log_transition(request_id, application_id, state.stage.value, next_state.stage.value, direction)

    return next_state


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
def start_application(
    request_body: StartApplicationRequest,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
    plan_config: PlanConfig = Depends(get_plan_config),
):
    """
    Start a loan application.

    Eligibility is re-evaluated first: an ineligible participant gets a
    terminal "ineligible" application carrying the reasons.
    """
    request_id = get_request_id(request)
    state = workflow.start_application(
        participant_id=request_body.participant_id,
        participant=request_body.participant.to_domain(),
        config=plan_config,
        funding_sources=request_body.sources(),
    )

    try:
        store.create(state)
    except ApplicationConflictError as e:
        logging.warning(f"Application conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))

    record_application_started(state.eligibility.eligible)
    logging.info(
        "Application started",
        extra={
            "request_id": request_id,
            "application_id": state.application_id,
            "participant_id": state.participant_id,
            "step": "application_started",
            "eligible": state.eligibility.eligible,
        },
    )
    return _to_response(state)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(application_id: str, store: InMemoryApplicationStore = Depends(get_application_store)):
    """Current stage, draft and the errors blocking the next step"""
    return _to_response(_load(store, application_id))


@router.delete("/applications/{application_id}", status_code=204)
def discard_application(application_id: str, store: InMemoryApplicationStore = Depends(get_application_store)):
    """Abandon the flow; the draft is dropped"""
    try:
        store.discard(application_id)
    except ApplicationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@router.patch("/applications/{application_id}/basics", response_model=ApplicationResponse)
def patch_basics(
    application_id: str,
    patch: BasicsPatch,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    # purpose may be cleared explicitly; other fields are only merged when given
    changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None or k == "purpose"}
    state = _apply(store, application_id, get_request_id(request), lambda s: workflow.patch_basics(s, **changes))
    return _to_response(state)


@router.patch("/applications/{application_id}/payment", response_model=ApplicationResponse)
def patch_payment(
    application_id: str,
    patch: PaymentPatch,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    changes = patch.model_dump(exclude_none=True)
    state = _apply(store, application_id, get_request_id(request), lambda s: workflow.patch_payment(s, **changes))
    return _to_response(state)


@router.patch("/applications/{application_id}/allocation", response_model=ApplicationResponse)
def patch_allocation(
    application_id: str,
    patch: AllocationPatch,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    state = _apply(
        store,
        application_id,
        get_request_id(request),
        lambda s: workflow.patch_allocation(s, mode=patch.mode, amounts=patch.amounts),
    )
    return _to_response(state)


@router.patch("/applications/{application_id}/compliance", response_model=ApplicationResponse)
def patch_compliance(
    application_id: str,
    patch: CompliancePatch,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    state = _apply(
        store,
        application_id,
        get_request_id(request),
        lambda s: workflow.patch_compliance(s, patch.acknowledgments),
    )
    return _to_response(state)


@router.post("/applications/{application_id}/documents", response_model=ApplicationResponse)
def attach_documents(
    application_id: str,
    request_body: AttachDocumentsRequest,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    """Record metadata (name, size, type) of files the participant picked"""
    uploads = [upload.model_dump() for upload in request_body.files]
    state = _apply(
        store,
        application_id,
        get_request_id(request),
        lambda s: workflow.attach_documents(s, request_body.document_type, uploads),
    )
    return _to_response(state)


@router.delete("/applications/{application_id}/documents/{document_id}", response_model=ApplicationResponse)
def remove_document(
    application_id: str,
    document_id: str,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    state = _apply(store, application_id, get_request_id(request), lambda s: workflow.remove_document(s, document_id))
    return _to_response(state)


@router.post("/applications/{application_id}/advance", response_model=ApplicationResponse)
def advance_application(
    application_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    store: InMemoryApplicationStore = Depends(get_application_store),
    recordkeeper: RecordkeeperClient = Depends(get_recordkeeper_client),
):
    """
    Move to the next stage once the current one validates.

    Flow on REVIEW -> CONFIRMED:
    1. Stamp confirmation number, lock the draft
    2. Record metrics and logs
    3. Send async submission webhook to the recordkeeper
    """
    request_id = get_request_id(request)
    state = _apply(store, application_id, request_id, workflow.advance)

    if state.stage == Stage.CONFIRMED:
        payload = workflow.build_submission(state)
        background_tasks.add_task(recordkeeper.send_submission_event, payload)
        record_submission(state.draft.basics.amount)
        log_submission(
            request_id,
            state.application_id,
            state.participant_id,
            state.draft.basics.amount,
            state.confirmation_number,
        )

    return _to_response(state)


@router.post("/applications/{application_id}/retreat", response_model=ApplicationResponse)
def retreat_application(
    application_id: str,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    """Go back one stage; never blocked by validation"""
    state = _apply(store, application_id, get_request_id(request), workflow.retreat)
    return _to_response(state)


@router.post("/applications/{application_id}/stage", response_model=ApplicationResponse)
def go_to_stage(
    application_id: str,
    request_body: GoToStageRequest,
    request: Request,
    store: InMemoryApplicationStore = Depends(get_application_store),
):
    """Jump back to an earlier stage, e.g. to edit the amount from review"""
    state = _apply(
        store,
        application_id,
        get_request_id(request),
        lambda s: workflow.go_to_stage(s, request_body.stage),
    )
    return _to_response(state)


@router.get("/applications/{application_id}/quote", response_model=CalculationResponse)
def quote_application(application_id: str, store: InMemoryApplicationStore = Depends(get_application_store)):
    """Loan figures for the draft's current basics"""
    return CalculationResponse.from_domain(workflow.quote(_load(store, application_id)))
