"""In-process holder for in-flight origination drafts"""

import threading
from collections import OrderedDict
from typing import Callable, Dict, Optional, Tuple

from loan_origination.config import settings
from loan_origination.domain.exceptions import ApplicationConflictError, ApplicationNotFoundError
from loan_origination.domain.models import TERMINAL_STAGES, WorkflowState


class InMemoryApplicationStore:
    """
    One workflow per application id, single owner per participant.

    A participant may only have one non-terminal application at a time; a
    second start is rejected rather than interleaved. Terminal applications
    (confirmed or ineligible) are kept for lookups up to terminal_retention,
    oldest evicted first, and are never replaced once stored.
    """

    def __init__(self, terminal_retention: Optional[int] = None):
        self._lock = threading.Lock()
        self._applications: Dict[str, WorkflowState] = {}
        self._in_flight: Dict[str, str] = {}  # participant_id -> application_id
        self._terminal: "OrderedDict[str, None]" = OrderedDict()
        self.terminal_retention = (
            settings.application_terminal_retention if terminal_retention is None else terminal_retention
        )

    def create(self, state: WorkflowState) -> WorkflowState:
        """Register a freshly started application"""
        with self._lock:
            in_flight_id = self._in_flight.get(state.participant_id)
            if in_flight_id is not None:
                raise ApplicationConflictError(
                    f"Participant {state.participant_id} already has application {in_flight_id} in progress"
                )
            self._put(state)
            return state

    def get(self, application_id: str) -> WorkflowState:
        with self._lock:
            state = self._applications.get(application_id)
        if state is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        return state

    def save(self, state: WorkflowState) -> WorkflowState:
        """
        Replace the stored workflow with its next value.

        Raises:
            ApplicationNotFoundError: unknown application id
            ApplicationConflictError: stored application is already terminal
        """
        with self._lock:
            self._ensure_replaceable(state.application_id, state)
            self._put(state)
            return state

    def update(
        self,
        application_id: str,
        mutation: Callable[[WorkflowState], WorkflowState],
    ) -> Tuple[WorkflowState, WorkflowState]:
        """
        Load, transform and store an application as one step.

        The lock is held across the whole sequence so concurrent requests
        against the same application serialize. Exceptions raised by the
        mutation propagate and leave the stored state untouched.

        Returns:
            (previous state, stored state)
        """
        with self._lock:
            current = self._applications.get(application_id)
            if current is None:
                raise ApplicationNotFoundError(f"Application {application_id} not found")
            next_state = mutation(current)
            self._ensure_replaceable(application_id, next_state)
            self._put(next_state)
            return current, next_state

    def discard(self, application_id: str) -> None:
        with self._lock:
            state = self._applications.pop(application_id, None)
            if state is None:
                raise ApplicationNotFoundError(f"Application {application_id} not found")
            self._terminal.pop(application_id, None)
            if self._in_flight.get(state.participant_id) == application_id:
                del self._in_flight[state.participant_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._applications)

    def _ensure_replaceable(self, application_id: str, state: WorkflowState) -> None:
        current = self._applications.get(application_id)
        if current is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        if current.stage in TERMINAL_STAGES and state != current:
            raise ApplicationConflictError(
                f"Application {application_id} is already {current.stage.value} and can no longer be changed"
            )

    def _put(self, state: WorkflowState) -> None:
        self._applications[state.application_id] = state

        if state.stage not in TERMINAL_STAGES:
            self._in_flight[state.participant_id] = state.application_id
            return

        if self._in_flight.get(state.participant_id) == state.application_id:
            del self._in_flight[state.participant_id]
        self._terminal[state.application_id] = None
        while len(self._terminal) > self.terminal_retention:
            evicted_id, _ = self._terminal.popitem(last=False)
            self._applications.pop(evicted_id, None)


application_store = InMemoryApplicationStore()
