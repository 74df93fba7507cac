"""
Note dialog state for flag / resolve / unapprove actions.

An explicit finite state value replaces ad hoc component state:

    Closed --open--> Composing(kind) --begin_submit--> Composing(submitting)
       ^                  |                                 |
       +-----cancel-------+          submit_failed ---------+ (error set)
       +-----------------------------submit_succeeded-------+

Cancelling discards local state only; a request already sent is not
cancelled and its result is still reconciled by the workflow service.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from records_kernel.domain.approval import ApprovalAction


@dataclass(frozen=True)
class Closed:
    pass


@dataclass(frozen=True)
class _Composing:
    metrics_id: str
    stage_key: str
    text: str = ""
    submitting: bool = False
    error: str | None = None

    action: ApprovalAction = ApprovalAction.FLAG
    requires_text: bool = True

    def can_submit(self) -> bool:
        if self.submitting:
            return False
        return bool(self.text.strip()) or not self.requires_text


@dataclass(frozen=True)
class ComposingFlag(_Composing):
    action: ApprovalAction = ApprovalAction.FLAG
    requires_text: bool = True


@dataclass(frozen=True)
class ComposingResolve(_Composing):
    action: ApprovalAction = ApprovalAction.RESOLVE
    requires_text: bool = True


@dataclass(frozen=True)
class ComposingUnapprove(_Composing):
    action: ApprovalAction = ApprovalAction.UNAPPROVE
    requires_text: bool = False


DialogState = Union[Closed, ComposingFlag, ComposingResolve, ComposingUnapprove]

CLOSED = Closed()

_COMPOSERS = {
    ApprovalAction.FLAG: ComposingFlag,
    ApprovalAction.RESOLVE: ComposingResolve,
    ApprovalAction.UNAPPROVE: ComposingUnapprove,
}


def open_dialog(action: ApprovalAction, metrics_id: str, stage_key: str) -> DialogState:
    """Start composing a note for ``action`` on one record stage."""
    composer = _COMPOSERS.get(action)
    if composer is None:
        raise ValueError(f"Action {action.value} has no note dialog")
    return composer(metrics_id=metrics_id, stage_key=stage_key)


def edit(state: DialogState, text: str) -> DialogState:
    if isinstance(state, Closed):
        return state
    return replace(state, text=text, error=None)


def can_submit(state: DialogState) -> bool:
    return not isinstance(state, Closed) and state.can_submit()


def begin_submit(state: DialogState) -> DialogState:
    """Mark the request outstanding; the submit control is disabled until it settles."""
    if not can_submit(state):
        return state
    return replace(state, submitting=True, error=None)


def submit_failed(state: DialogState, message: str) -> DialogState:
    if isinstance(state, Closed):
        return state
    return replace(state, submitting=False, error=message)


def submit_succeeded(state: DialogState) -> DialogState:
    return CLOSED


def cancel(state: DialogState) -> DialogState:
    return CLOSED
