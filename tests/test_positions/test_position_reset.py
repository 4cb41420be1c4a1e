"""Tests for ResetWorkflowService.

Covers request validation, the PENDING -> FIRST_APPROVED -> EXECUTED path,
separation of duties between requester and both approvers, rejection, and
the audit events each transition writes.
"""

import pytest

from src.core.enums import AuditEventType, AuditStatus, ResetStatus
from src.positions.position_reset import ResetWorkflowService

JUSTIFICATION = (
    "Customer cancelled spot deal worth USD 200,000 due to documentation issues. "
    "Need to reverse the position impact."
)


@pytest.fixture
def service(audit_log) -> ResetWorkflowService:
    return ResetWorkflowService(audit_log, min_justification_chars=100)


@pytest.fixture
def request_id(service) -> str:
    request = service.submit_request(
        position_id="POS-SGD-CITIBANK",
        current_position=2_500_000,
        target_position=2_300_000,
        reason="Cancelled Deal Correction",
        justification=JUSTIFICATION,
        requested_by="john.trader@company.com",
    )
    return request.request_id


# =============================================================================
# Submission
# =============================================================================


class TestSubmit:
    def test_creates_pending_request(self, service, request_id, audit_log):
        request = service.get(request_id)
        assert request_id == "RST-0001"
        assert request.status is ResetStatus.PENDING
        assert request.adjustment == -200_000
        assert request.approvals == ()

        event = audit_log.events[0]
        assert event.event_type is AuditEventType.POSITION_RESET
        assert event.status is AuditStatus.PENDING
        assert event.details["reset_id"] == "RST-0001"

    def test_short_justification_rejected(self, service, audit_log):
        with pytest.raises(ValueError, match="at least 100 characters"):
            service.submit_request(
                "POS-SGD-CITIBANK", 1, 2, "Other", "   too short   " + " " * 200, "john"
            )
        assert len(audit_log) == 0

    def test_target_equal_to_current_rejected(self, service):
        with pytest.raises(ValueError, match="nothing to reset"):
            service.submit_request("POS-SGD-CITIBANK", 5, 5, "Other", JUSTIFICATION, "john")

    def test_missing_requester_rejected(self, service):
        with pytest.raises(ValueError, match="required"):
            service.submit_request("POS-SGD-CITIBANK", 1, 2, "Other", JUSTIFICATION, "")

    def test_pending_lists_open_requests(self, service, request_id):
        assert [r.request_id for r in service.pending()] == [request_id]


# =============================================================================
# Approval
# =============================================================================


class TestApproval:
    def test_two_level_approval_executes(self, service, request_id, audit_log):
        first = service.approve(request_id, 1, "sarah.manager@company.com", "Docs verified")
        assert first.status is ResetStatus.FIRST_APPROVED
        assert first.approvals[0].comments == "Docs verified"

        second = service.approve(request_id, 2, "cfo@company.com")
        assert second.status is ResetStatus.EXECUTED
        assert [a.level for a in second.approvals] == [1, 2]
        assert second.approvals[1].comments == "Approved at level 2"
        assert service.pending() == []

        level_2, level_1 = audit_log.events[:2]
        assert level_1.event_type is AuditEventType.APPROVAL
        assert level_1.status is AuditStatus.APPROVED
        assert level_2.status is AuditStatus.COMPLETED
        assert level_2.details["level"] == 2

    def test_level_2_before_level_1_refused(self, service, request_id):
        with pytest.raises(ValueError, match="cannot take level 2"):
            service.approve(request_id, 2, "cfo@company.com")

    def test_same_approver_twice_refused(self, service, request_id):
        service.approve(request_id, 1, "sarah.manager@company.com")
        with pytest.raises(ValueError, match="different approver"):
            service.approve(request_id, 2, "sarah.manager@company.com")
        assert service.get(request_id).status is ResetStatus.FIRST_APPROVED

    def test_requester_cannot_approve(self, service, request_id):
        with pytest.raises(ValueError, match="own reset"):
            service.approve(request_id, 1, "john.trader@company.com")

    @pytest.mark.parametrize("level", [0, 3])
    def test_invalid_level(self, service, request_id, level):
        with pytest.raises(ValueError, match="must be 1 or 2"):
            service.approve(request_id, level, "sarah.manager@company.com")

    def test_unknown_request(self, service):
        with pytest.raises(KeyError):
            service.approve("RST-9999", 1, "sarah.manager@company.com")


class TestReject:
    def test_reject_with_comments(self, service, request_id, audit_log):
        rejected = service.reject(request_id, "sarah.manager@company.com", "Missing documents")
        assert rejected.status is ResetStatus.REJECTED
        event = audit_log.events[0]
        assert event.status is AuditStatus.REJECTED
        assert event.details["comments"] == "Missing documents"

    def test_comments_mandatory(self, service, request_id):
        with pytest.raises(ValueError, match="comments are mandatory"):
            service.reject(request_id, "sarah.manager@company.com", "  ")

    def test_cannot_reject_executed(self, service, request_id):
        service.approve(request_id, 1, "sarah.manager@company.com")
        service.approve(request_id, 2, "cfo@company.com")
        with pytest.raises(ValueError, match="closed"):
            service.reject(request_id, "cfo@company.com", "Too late")

    def test_first_approved_can_be_rejected(self, service, request_id):
        service.approve(request_id, 1, "sarah.manager@company.com")
        assert service.reject(request_id, "cfo@company.com", "No").status is ResetStatus.REJECTED
