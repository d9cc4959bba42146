"""
Workflow Templates - Pre-built governance workflows

Ready-to-use definitions for the most common governance processes. A
template is instantiated into a regular definition through the template
service, optionally with overrides.
"""
from typing import Dict, List, Optional

from ..domain.models import WorkflowTemplate


# =============================================================================
# STUDENT COMPLAINT
# =============================================================================

STUDENT_COMPLAINT = WorkflowTemplate.model_validate({
    "template_id": "student-complaint",
    "name": "Student Complaint Resolution",
    "description": "Handles student complaints from submission through investigation to resolution",
    "category": "complaint",
    "icon": "📝",
    "use_cases": [
        "Academic complaints",
        "Accommodation issues",
        "Discrimination or harassment complaints",
        "Service quality concerns",
    ],
    "setup_instructions": "Grant the ComplaintsOfficer role and populate the ComplaintsCommittee before use.",
    "definition": {
        "name": "Student Complaint Resolution",
        "description": "Standard workflow for handling student complaints",
        "category": "complaint",
        "states": [
            {
                "id": "submitted",
                "label": "Submitted",
                "description": "Complaint has been submitted",
                "color": "blue",
                "is_initial": True,
                "allowed_actions": ["view", "comment"],
            },
            {
                "id": "under-review",
                "label": "Under Review",
                "description": "Complaint is being reviewed by assigned officer",
                "color": "yellow",
                "allowed_actions": ["view", "comment", "upload_evidence"],
                "sla": {"max_duration_hours": 120, "warning_at_hours": 96, "escalate_to": "Admin"},
            },
            {
                "id": "investigating",
                "label": "Investigation",
                "description": "Formal investigation in progress",
                "color": "orange",
                "allowed_actions": ["view", "comment", "upload_evidence"],
                "sla": {"max_duration_hours": 480, "warning_at_hours": 384},
            },
            {
                "id": "committee-review",
                "label": "Committee Review",
                "description": "Under review by complaints committee",
                "color": "purple",
                "allowed_actions": ["view", "comment"],
            },
            {
                "id": "resolved",
                "label": "Resolved",
                "description": "Complaint has been resolved",
                "color": "green",
                "is_final": True,
                "allowed_actions": ["view"],
            },
            {
                "id": "rejected",
                "label": "Rejected",
                "description": "Complaint was rejected",
                "color": "red",
                "is_final": True,
                "allowed_actions": ["view"],
            },
        ],
        "transitions": [
            {
                "id": "assign-for-review",
                "label": "Assign for Review",
                "from_state": "submitted",
                "to_state": "under-review",
                "required_roles": ["Admin", "ComplaintsOfficer"],
                "actions": [
                    {
                        "type": "notify",
                        "notify_roles": ["ComplaintsOfficer"],
                        "message": "New complaint assigned to you for review",
                    }
                ],
            },
            {
                "id": "start-investigation",
                "label": "Start Investigation",
                "from_state": "under-review",
                "to_state": "investigating",
                "required_roles": ["ComplaintsOfficer"],
                "requires_comment": True,
                "actions": [
                    {"type": "audit", "audit_message": "Formal investigation started", "audit_severity": "info"}
                ],
            },
            {
                "id": "resolve-directly",
                "label": "Resolve Without Investigation",
                "from_state": "under-review",
                "to_state": "resolved",
                "required_roles": ["ComplaintsOfficer"],
                "requires_comment": True,
                "confirmation_message": "Are you sure you want to resolve this complaint without investigation?",
            },
            {
                "id": "reject-complaint",
                "label": "Reject Complaint",
                "from_state": "under-review",
                "to_state": "rejected",
                "required_roles": ["ComplaintsOfficer"],
                "requires_comment": True,
                "confirmation_message": "Are you sure you want to reject this complaint?",
            },
            {
                "id": "escalate-to-committee",
                "label": "Escalate to Committee",
                "from_state": "investigating",
                "to_state": "committee-review",
                "required_roles": ["ComplaintsOfficer"],
                "requires_comment": True,
                "actions": [
                    {
                        "type": "assign",
                        "assign_to_committee": "ComplaintsCommittee",
                    },
                    {
                        "type": "notify",
                        "notify_committees": ["ComplaintsCommittee"],
                        "message": "New complaint escalated for committee review",
                    },
                ],
            },
            {
                "id": "resolve-after-investigation",
                "label": "Resolve",
                "from_state": "investigating",
                "to_state": "resolved",
                "required_roles": ["ComplaintsOfficer"],
                "requires_comment": True,
                "requires_attachments": True,
                "min_attachments": 1,
            },
            {
                "id": "committee-approve",
                "label": "Approve Resolution",
                "from_state": "committee-review",
                "to_state": "resolved",
                "required_roles": ["Board"],
                "required_committees": ["ComplaintsCommittee"],
                "requires_vote": True,
                "vote_type": "simple-majority",
                "requires_comment": True,
            },
            {
                "id": "committee-reject",
                "label": "Reject Complaint",
                "from_state": "committee-review",
                "to_state": "rejected",
                "required_roles": ["Board"],
                "required_committees": ["ComplaintsCommittee"],
                "requires_vote": True,
                "vote_type": "simple-majority",
                "requires_comment": True,
            },
        ],
        "assignment_rules": [
            {
                "id": "rule-student-complaint",
                "priority": 10,
                "document_type": ["complaint"],
                "document_category": ["student"],
                "tags": ["student-complaint", "complaint"],
            }
        ],
        "fields": [
            {
                "name": "complainant_name",
                "label": "Complainant Name",
                "type": "text",
                "required": True,
                "description": "Name of the student making the complaint",
            },
            {
                "name": "complainant_email",
                "label": "Complainant Email",
                "type": "text",
                "required": True,
                "validation": {"pattern": r"^[^\s@]+@[^\s@]+\.[^\s@]+$"},
            },
            {
                "name": "complaint_category",
                "label": "Complaint Category",
                "type": "select",
                "required": True,
                "validation": {
                    "options": [
                        "Academic", "Accommodation", "Discrimination",
                        "Harassment", "Service Quality", "Other",
                    ]
                },
            },
            {
                "name": "description",
                "label": "Complaint Description",
                "type": "text",
                "required": True,
                "description": "Detailed description of the complaint",
            },
            {"name": "date_of_incident", "label": "Date of Incident", "type": "date", "required": True},
            {
                "name": "assigned_officer",
                "label": "Assigned Complaints Officer",
                "type": "user",
                "editable_in_states": ["submitted"],
            },
            {
                "name": "evidence_documents",
                "label": "Evidence Documents",
                "type": "document",
                "editable_in_states": ["under-review", "investigating"],
            },
            {
                "name": "resolution",
                "label": "Resolution Outcome",
                "type": "text",
                "required_in_states": ["resolved"],
            },
        ],
        "automations": [
            {
                "id": "auto-sla-warning",
                "name": "SLA Warning Notification",
                "trigger": "timeElapsed",
                "trigger_state": "under-review",
                "time_elapsed_hours": 96,
                "actions": [
                    {
                        "type": "notify",
                        "notify_roles": ["Admin"],
                        "template": "workflow_sla_warning",
                        "message": "Complaint approaching SLA deadline",
                    }
                ],
            }
        ],
        "settings": {
            "allowed_access_levels": ["Admin", "Executive"],
            "allowed_roles": ["Admin", "ComplaintsOfficer", "Board"],
            "allowed_committees": ["ComplaintsCommittee"],
            "require_document": True,
            "allow_multiple_documents": True,
            "allowed_file_types": ["pdf", "docx", "jpg", "png"],
            "max_file_size_mb": 10,
            "auto_version_on_state_change": True,
            "retention_period_days": 2555,
            "dms_library": "Complaints",
            "site_collection": "unite-complaints",
        },
    },
})


# =============================================================================
# DOCUMENT APPROVAL
# =============================================================================

DOCUMENT_APPROVAL = WorkflowTemplate.model_validate({
    "template_id": "document-approval",
    "name": "Document Approval",
    "description": "Simple approval workflow for documents requiring committee or board approval",
    "category": "approval",
    "icon": "✓",
    "use_cases": [
        "Board papers requiring approval",
        "Committee reports",
        "Financial documents",
        "Contract approvals",
    ],
    "definition": {
        "name": "Document Approval",
        "description": "Standard approval workflow for documents",
        "category": "approval",
        "states": [
            {
                "id": "draft",
                "label": "Draft",
                "description": "Document is in draft status",
                "color": "gray",
                "is_initial": True,
                "allowed_actions": ["edit", "comment"],
            },
            {
                "id": "pending-review",
                "label": "Pending Review",
                "description": "Document submitted for review",
                "color": "blue",
                "allowed_actions": ["view", "comment"],
                "on_enter": [{"type": "document", "document_state_change": "PendingApproval"}],
            },
            {
                "id": "approved",
                "label": "Approved",
                "description": "Document has been approved",
                "color": "green",
                "is_final": True,
                "allowed_actions": ["view"],
                "on_enter": [{"type": "document", "document_state_change": "Approved"}],
            },
            {
                "id": "rejected",
                "label": "Rejected",
                "description": "Document was rejected",
                "color": "red",
                "is_final": True,
                "allowed_actions": ["view"],
                "on_enter": [{"type": "document", "document_state_change": "Draft"}],
            },
        ],
        "transitions": [
            {
                "id": "submit-for-review",
                "label": "Submit for Review",
                "from_state": "draft",
                "to_state": "pending-review",
                "actions": [
                    {
                        "type": "notify",
                        "notify_roles": ["Approver"],
                        "message": "New document submitted for your review",
                    }
                ],
            },
            {
                "id": "approve",
                "label": "Approve",
                "from_state": "pending-review",
                "to_state": "approved",
                "required_roles": ["Board", "Executive"],
            },
            {
                "id": "reject",
                "label": "Reject",
                "from_state": "pending-review",
                "to_state": "rejected",
                "required_roles": ["Board", "Executive"],
                "requires_comment": True,
            },
        ],
        "assignment_rules": [
            {"id": "rule-general-approval", "priority": 5, "document_type": ["report", "proposal", "contract"]}
        ],
        "fields": [
            {"name": "title", "label": "Document Title", "type": "text", "required": True},
            {"name": "description", "label": "Description", "type": "text"},
            {"name": "approver", "label": "Assigned Approver", "type": "user", "required": True},
        ],
        "settings": {
            "allowed_access_levels": ["Admin", "Executive"],
            "require_document": True,
            "auto_version_on_state_change": True,
            "enable_teams_notifications": True,
            "retention_period_days": 1825,
            "dms_library": "Documents",
            "site_collection": "unite-docs",
        },
    },
})


# =============================================================================
# RESEARCH ETHICS
# =============================================================================

RESEARCH_ETHICS = WorkflowTemplate.model_validate({
    "template_id": "research-ethics",
    "name": "Research Ethics Approval",
    "description": "Workflow for research ethics applications requiring committee approval",
    "category": "ethics",
    "icon": "🔬",
    "use_cases": [
        "Human subjects research",
        "Animal research protocols",
        "Data collection requiring ethics approval",
    ],
    "setup_instructions": "Populate the EthicsCommittee; its members vote on committee decisions.",
    "definition": {
        "name": "Research Ethics Approval",
        "description": "Research ethics application review process",
        "category": "ethics",
        "states": [
            {"id": "submitted", "label": "Submitted", "color": "blue", "is_initial": True, "allowed_actions": ["view"]},
            {
                "id": "initial-review",
                "label": "Initial Review",
                "color": "yellow",
                "allowed_actions": ["view", "comment"],
                "sla": {"max_duration_hours": 168, "warning_at_hours": 120},
            },
            {
                "id": "revisions-requested",
                "label": "Revisions Requested",
                "color": "orange",
                "allowed_actions": ["edit", "upload_evidence"],
            },
            {
                "id": "committee-review",
                "label": "Committee Review",
                "color": "purple",
                "allowed_actions": ["view", "comment"],
            },
            {"id": "approved", "label": "Approved", "color": "green", "is_final": True, "allowed_actions": ["view"]},
            {"id": "rejected", "label": "Rejected", "color": "red", "is_final": True, "allowed_actions": ["view"]},
        ],
        "transitions": [
            {
                "id": "start-review",
                "label": "Start Initial Review",
                "from_state": "submitted",
                "to_state": "initial-review",
                "required_roles": ["EthicsOfficer"],
            },
            {
                "id": "request-revisions",
                "label": "Request Revisions",
                "from_state": "initial-review",
                "to_state": "revisions-requested",
                "required_roles": ["EthicsOfficer"],
                "requires_comment": True,
            },
            {
                "id": "send-to-committee",
                "label": "Send to Committee",
                "from_state": "initial-review",
                "to_state": "committee-review",
                "required_roles": ["EthicsOfficer"],
            },
            {
                "id": "resubmit",
                "label": "Resubmit",
                "from_state": "revisions-requested",
                "to_state": "initial-review",
                "requires_comment": True,
            },
            {
                "id": "committee-approve",
                "label": "Approve",
                "from_state": "committee-review",
                "to_state": "approved",
                "required_roles": ["Board"],
                "required_committees": ["EthicsCommittee"],
                "requires_vote": True,
                "vote_type": "simple-majority",
            },
            {
                "id": "committee-reject",
                "label": "Reject",
                "from_state": "committee-review",
                "to_state": "rejected",
                "required_roles": ["Board"],
                "required_committees": ["EthicsCommittee"],
                "requires_vote": True,
                "vote_type": "simple-majority",
                "requires_comment": True,
            },
        ],
        "assignment_rules": [
            {
                "id": "rule-ethics",
                "priority": 15,
                "document_type": ["ethics-application"],
                "committee": ["EthicsCommittee"],
                "auto_start": True,
            }
        ],
        "fields": [
            {"name": "researcher_name", "label": "Researcher Name", "type": "text", "required": True},
            {"name": "research_title", "label": "Research Title", "type": "text", "required": True},
            {
                "name": "research_type",
                "label": "Research Type",
                "type": "select",
                "required": True,
                "validation": {"options": ["Human Subjects", "Animal Research", "Data Collection", "Clinical Trial"]},
            },
            {
                "name": "risk_level",
                "label": "Risk Level",
                "type": "select",
                "required": True,
                "validation": {"options": ["Minimal", "Low", "Medium", "High"]},
            },
            {
                "name": "participant_count",
                "label": "Expected Participant Count",
                "type": "number",
                "required": True,
                "validation": {"min": 1},
            },
        ],
        "settings": {
            "allowed_access_levels": ["Admin", "Executive"],
            "allowed_committees": ["EthicsCommittee"],
            "require_document": True,
            "allow_multiple_documents": True,
            "allowed_file_types": ["pdf", "docx"],
            "auto_version_on_state_change": True,
            "retention_period_days": 3650,
            "dms_library": "Ethics",
            "site_collection": "unite-ethics",
        },
    },
})


# =============================================================================
# REGISTRY
# =============================================================================

TEMPLATE_REGISTRY: Dict[str, WorkflowTemplate] = {
    template.template_id: template
    for template in (STUDENT_COMPLAINT, DOCUMENT_APPROVAL, RESEARCH_ETHICS)
}


def get_workflow_template(template_id: str) -> Optional[WorkflowTemplate]:
    return TEMPLATE_REGISTRY.get(template_id)


def list_workflow_templates(category: Optional[str] = None) -> List[WorkflowTemplate]:
    return [
        t for t in TEMPLATE_REGISTRY.values()
        if category is None or t.category == category
    ]
