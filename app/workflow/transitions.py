# ==============================================================================
# app/workflow/transitions.py
# ------------------------------------------------------------------------------
# The fixed status transition table for incentive calculations.
# ==============================================================================

from collections import namedtuple

WorkflowTransition = namedtuple('WorkflowTransition', ['from_status', 'to_status', 'label', 'requires_approver'])

WORKFLOW_TRANSITIONS = (
    WorkflowTransition('draft', 'pending_approval', 'Submit for Approval', False),
    WorkflowTransition('pending_approval', 'approved', 'Approve', True),
    WorkflowTransition('pending_approval', 'draft', 'Return to Draft', False),
    WorkflowTransition('approved', 'paid', 'Mark as Paid', False),
    WorkflowTransition('approved', 'draft', 'Revert to Draft', True),
)

STATUS_LABELS = {
    'draft': 'Draft',
    'pending_approval': 'Pending Approval',
    'approved': 'Approved',
    'paid': 'Paid',
}


def get_available_transitions(current_status):
    """All transitions that may be taken from a status; empty for 'paid'."""
    return [t for t in WORKFLOW_TRANSITIONS if t.from_status == current_status]


def find_transition(from_status, to_status):
    for transition in WORKFLOW_TRANSITIONS:
        if transition.from_status == from_status and transition.to_status == to_status:
            return transition
    return None


def get_status_label(status):
    return STATUS_LABELS.get(status, status)
