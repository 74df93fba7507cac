"""Tests for the flag / resolve / unapprove note dialog state machine."""

import pytest

from records_kernel.domain.approval import ApprovalAction
from records_kernel.domain.dialog import (
    CLOSED,
    Closed,
    ComposingFlag,
    ComposingResolve,
    ComposingUnapprove,
    begin_submit,
    can_submit,
    cancel,
    edit,
    open_dialog,
    submit_failed,
    submit_succeeded,
)


class TestOpen:
    @pytest.mark.parametrize("action,expected", [
        (ApprovalAction.FLAG, ComposingFlag),
        (ApprovalAction.RESOLVE, ComposingResolve),
        (ApprovalAction.UNAPPROVE, ComposingUnapprove),
    ])
    def test_open_returns_composer(self, action, expected):
        state = open_dialog(action, "m-1", "hod")
        assert isinstance(state, expected)
        assert state.metrics_id == "m-1"
        assert state.stage_key == "hod"
        assert state.text == ""
        assert state.submitting is False
        assert state.error is None

    def test_approve_has_no_dialog(self):
        with pytest.raises(ValueError):
            open_dialog(ApprovalAction.APPROVE, "m-1", "hod")


class TestSubmitEnablement:
    def test_flag_requires_text(self):
        state = open_dialog(ApprovalAction.FLAG, "m-1", "hod")
        assert not can_submit(state)
        assert not can_submit(edit(state, "   "))
        assert can_submit(edit(state, "GPA mismatch"))

    def test_resolve_requires_text(self):
        state = open_dialog(ApprovalAction.RESOLVE, "m-1", "hod")
        assert not can_submit(state)
        assert can_submit(edit(state, "Corrected"))

    def test_unapprove_text_optional(self):
        assert can_submit(open_dialog(ApprovalAction.UNAPPROVE, "m-1", "hod"))

    def test_closed_cannot_submit(self):
        assert not can_submit(CLOSED)
        assert edit(CLOSED, "text") is CLOSED


class TestLifecycle:
    def test_submitting_disables_resubmit(self):
        state = begin_submit(edit(open_dialog(ApprovalAction.FLAG, "m-1", "hod"), "note"))
        assert state.submitting is True
        assert not can_submit(state)
        assert begin_submit(state) is state

    def test_failure_keeps_text_and_shows_error(self):
        state = begin_submit(edit(open_dialog(ApprovalAction.FLAG, "m-1", "hod"), "note"))
        failed = submit_failed(state, "Unable to update approval.")
        assert failed.submitting is False
        assert failed.error == "Unable to update approval."
        assert failed.text == "note"
        assert can_submit(failed)

    def test_editing_clears_error(self):
        state = submit_failed(
            begin_submit(edit(open_dialog(ApprovalAction.FLAG, "m-1", "hod"), "note")),
            "boom",
        )
        assert edit(state, "note 2").error is None

    def test_success_closes(self):
        state = begin_submit(edit(open_dialog(ApprovalAction.RESOLVE, "m-1", "hod"), "ok"))
        assert isinstance(submit_succeeded(state), Closed)

    def test_cancel_closes_even_while_submitting(self):
        state = begin_submit(edit(open_dialog(ApprovalAction.FLAG, "m-1", "hod"), "note"))
        assert cancel(state) == CLOSED
