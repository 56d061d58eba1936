"""
POD Tracker
POD domain model.

Models:
    - Pod: a deployment unit moving through the engineering workflow
    - PodStatusHistory: append-only ledger of status / sub-status transitions
"""

import uuid
from datetime import datetime, timezone

from podtracker.models import db
from podtracker.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

POD_STATUSES = (
    "Initial",
    "Engineering",
    "Data Management",
    "Submitted",
    "Complete",
    "Revision",
    "Blocked",
    "Paused",
    "Reject",
    "Decom",
)

POD_SUB_STATUSES = (
    "Assignment",
    "Assessment",
    "Conversion File",
    "Ready",
    "Normalization Required",
    "PEP Generation",
    "TDS Generation",
    "Preload Generation",
    "Services Connectivity",
    "NPB",
    "VM Deletes",
    "Network Deletes",
    "MACD Approval",
    "DLP",
    "CDM",
    "CVaaS",
    "DNS Deletes",
    "DNS Adds",
    "Network Adds/MACD",
    "Preload Deletes",
    "Preload Adds",
    "LEP Update",
    "PEP Update",
    "ORT Not Complete",
    "Tenant Definition",
)

POD_ORGS = ("ATS", "DNS Ops", "ENG", "LABS", "LCM", "VNF Ops", "PMO")

TERMINAL_STATUS = "Complete"

# Milestone dates tracked per POD; every one is paired with an ``<field>_is_na`` flag.
MILESTONE_DATE_FIELDS = (
    "lep_assessment",
    "dlp_template_updates",
    "ip_acquisition",
    "ip_allocation",
    "conversion_file_update",
    "conversion_file_validation",
    "pep_generation",
    "connectit_tds_creation",
    "connectit_preload_creation",
    "checklist_creation",
    "vm_delete_list",
    "vm_deletes_complete",
    "lcm_network_deletes",
    "macd_creation",
    "ats_macd_approval",
    "lcm_network_delete_completion",
    "dlp_uploads",
    "cdm_load",
    "in_service_vav_audit",
    "global_cvaas_audit",
    "dns",
    "lcm_add_ticket",
    "preload_ticket_submitted",
    "ixc_roaming_smop",
    "gtm_vvm_smop",
    "other_routing",
    "publish_pep",
    "ticket_notification_email",
    "mylogins_request",
    "lcm_complete",
    "preload_complete",
    "completed_date",
)

TEXT_FIELDS = (
    "internal_pod_id",
    "type",
    "org",
    "clli",
    "city",
    "state",
    "router_type",
    "router1",
    "router2",
    "pod_program_type",
    "tenant_name",
    "current_lep_version",
    "lep_version_to_be_applied",
    "pod_type",
    "pod_type_original",
    "lcm_network_deletes_ticket",
    "dns_ticket_adds_deletes",
    "dns_ticket_changes",
    "lcm_add_ticket_number",
    "preload_ticket_number1",
    "preload_ticket_number2",
    "preload_ticket_number3",
    "ixc_roaming_smop_ticket",
    "gtm_vvm_smop_ticket",
    "notes",
    "project_managers",
    "link_to_active_tds",
    "link_to_active_preloads",
)


def _uuid():
    return str(uuid.uuid4())


class Pod(SoftDeleteMixin, db.Model):
    """
    Deployment unit ("POD").

    ``pod`` is the business key; it is unique among live PODs of the same
    partition (active vs. history), not globally.
    """

    __tablename__ = "pods"
    __table_args__ = (
        db.Index("ix_pods_pod_history", "pod", "is_history"),
        db.Index("ix_pods_sla", "sla_calculated_nbd"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    pod = db.Column(db.String(100), nullable=False, index=True)

    status = db.Column(db.String(30), nullable=False, default="Initial")
    sub_status = db.Column(db.String(40), nullable=False, default="Assignment")
    sub_status_last_changed = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_engineer = db.Column(db.String(200), nullable=False, default="")
    assigned_engineer_date = db.Column(db.DateTime(timezone=True), nullable=True)
    priority = db.Column(db.Integer, nullable=False, default=9999)
    special = db.Column(db.Boolean, nullable=False, default=False)

    # Free-text descriptive attributes
    internal_pod_id = db.Column(db.String(100), default="")
    type = db.Column(db.String(100), default="")
    org = db.Column(db.String(30), default="")
    clli = db.Column(db.String(50), default="")
    city = db.Column(db.String(100), default="")
    state = db.Column(db.String(50), default="")
    router_type = db.Column(db.String(50), default="")
    router1 = db.Column(db.String(100), default="")
    router2 = db.Column(db.String(100), default="")
    pod_program_type = db.Column(db.String(100), default="")
    tenant_name = db.Column(db.String(200), default="")
    current_lep_version = db.Column(db.String(50), default="")
    lep_version_to_be_applied = db.Column(db.String(50), default="")
    pod_type = db.Column(db.String(50), default="")
    pod_type_original = db.Column(db.String(50), default="", comment="SLA category")
    lcm_network_deletes_ticket = db.Column(db.String(100), nullable=True)
    dns_ticket_adds_deletes = db.Column(db.String(100), nullable=True)
    dns_ticket_changes = db.Column(db.String(100), nullable=True)
    lcm_add_ticket_number = db.Column(db.String(100), nullable=True)
    preload_ticket_number1 = db.Column(db.String(100), nullable=True)
    preload_ticket_number2 = db.Column(db.String(100), nullable=True)
    preload_ticket_number3 = db.Column(db.String(100), nullable=True)
    ixc_roaming_smop_ticket = db.Column(db.String(100), nullable=True)
    gtm_vvm_smop_ticket = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    project_managers = db.Column(db.Text, nullable=True)
    link_to_active_tds = db.Column(db.Text, nullable=True)
    link_to_active_preloads = db.Column(db.Text, nullable=True)

    # SLA inputs / outputs
    creation_timestamp = db.Column(db.DateTime(timezone=True), nullable=True)
    creation_timestamp_is_na = db.Column(db.Boolean, default=False)
    pod_workable_date = db.Column(db.Date, nullable=True)
    pod_workable_date_is_na = db.Column(db.Boolean, default=False)
    sla_calculated_nbd = db.Column(db.Date, nullable=True)
    sla_calculated_nbd_is_na = db.Column(db.Boolean, default=False)

    # Milestones
    lep_assessment = db.Column(db.DateTime(timezone=True), nullable=True)
    lep_assessment_is_na = db.Column(db.Boolean, default=False)
    dlp_template_updates = db.Column(db.DateTime(timezone=True), nullable=True)
    dlp_template_updates_is_na = db.Column(db.Boolean, default=False)
    ip_acquisition = db.Column(db.DateTime(timezone=True), nullable=True)
    ip_acquisition_is_na = db.Column(db.Boolean, default=False)
    ip_allocation = db.Column(db.DateTime(timezone=True), nullable=True)
    ip_allocation_is_na = db.Column(db.Boolean, default=False)
    conversion_file_update = db.Column(db.DateTime(timezone=True), nullable=True)
    conversion_file_update_is_na = db.Column(db.Boolean, default=False)
    conversion_file_validation = db.Column(db.DateTime(timezone=True), nullable=True)
    conversion_file_validation_is_na = db.Column(db.Boolean, default=False)
    pep_generation = db.Column(db.DateTime(timezone=True), nullable=True)
    pep_generation_is_na = db.Column(db.Boolean, default=False)
    connectit_tds_creation = db.Column(db.DateTime(timezone=True), nullable=True)
    connectit_tds_creation_is_na = db.Column(db.Boolean, default=False)
    connectit_preload_creation = db.Column(db.DateTime(timezone=True), nullable=True)
    connectit_preload_creation_is_na = db.Column(db.Boolean, default=False)
    checklist_creation = db.Column(db.DateTime(timezone=True), nullable=True)
    checklist_creation_is_na = db.Column(db.Boolean, default=False)
    vm_delete_list = db.Column(db.DateTime(timezone=True), nullable=True)
    vm_delete_list_is_na = db.Column(db.Boolean, default=False)
    vm_deletes_complete = db.Column(db.DateTime(timezone=True), nullable=True)
    vm_deletes_complete_is_na = db.Column(db.Boolean, default=False)
    lcm_network_deletes = db.Column(db.DateTime(timezone=True), nullable=True)
    lcm_network_deletes_is_na = db.Column(db.Boolean, default=False)
    macd_creation = db.Column(db.DateTime(timezone=True), nullable=True)
    macd_creation_is_na = db.Column(db.Boolean, default=False)
    ats_macd_approval = db.Column(db.DateTime(timezone=True), nullable=True)
    ats_macd_approval_is_na = db.Column(db.Boolean, default=False)
    lcm_network_delete_completion = db.Column(db.DateTime(timezone=True), nullable=True)
    lcm_network_delete_completion_is_na = db.Column(db.Boolean, default=False)
    dlp_uploads = db.Column(db.DateTime(timezone=True), nullable=True)
    dlp_uploads_is_na = db.Column(db.Boolean, default=False)
    cdm_load = db.Column(db.DateTime(timezone=True), nullable=True)
    cdm_load_is_na = db.Column(db.Boolean, default=False)
    in_service_vav_audit = db.Column(db.DateTime(timezone=True), nullable=True)
    in_service_vav_audit_is_na = db.Column(db.Boolean, default=False)
    global_cvaas_audit = db.Column(db.DateTime(timezone=True), nullable=True)
    global_cvaas_audit_is_na = db.Column(db.Boolean, default=False)
    dns = db.Column(db.DateTime(timezone=True), nullable=True)
    dns_is_na = db.Column(db.Boolean, default=False)
    lcm_add_ticket = db.Column(db.DateTime(timezone=True), nullable=True)
    lcm_add_ticket_is_na = db.Column(db.Boolean, default=False)
    preload_ticket_submitted = db.Column(db.DateTime(timezone=True), nullable=True)
    preload_ticket_submitted_is_na = db.Column(db.Boolean, default=False)
    ixc_roaming_smop = db.Column(db.DateTime(timezone=True), nullable=True)
    ixc_roaming_smop_is_na = db.Column(db.Boolean, default=False)
    gtm_vvm_smop = db.Column(db.DateTime(timezone=True), nullable=True)
    gtm_vvm_smop_is_na = db.Column(db.Boolean, default=False)
    other_routing = db.Column(db.DateTime(timezone=True), nullable=True)
    other_routing_is_na = db.Column(db.Boolean, default=False)
    publish_pep = db.Column(db.DateTime(timezone=True), nullable=True)
    publish_pep_is_na = db.Column(db.Boolean, default=False)
    ticket_notification_email = db.Column(db.DateTime(timezone=True), nullable=True)
    ticket_notification_email_is_na = db.Column(db.Boolean, default=False)
    mylogins_request = db.Column(db.DateTime(timezone=True), nullable=True)
    mylogins_request_is_na = db.Column(db.Boolean, default=False)
    lcm_complete = db.Column(db.DateTime(timezone=True), nullable=True)
    lcm_complete_is_na = db.Column(db.Boolean, default=False)
    preload_complete = db.Column(db.DateTime(timezone=True), nullable=True)
    preload_complete_is_na = db.Column(db.Boolean, default=False)
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_date_is_na = db.Column(db.Boolean, default=False)

    # Partition / visibility
    is_history = db.Column(db.Boolean, nullable=False, default=False, index=True)
    should_display = db.Column(db.Boolean, nullable=False, default=True)

    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    status_history = db.relationship(
        "PodStatusHistory", back_populates="pod", lazy="dynamic",
        order_by="PodStatusHistory.created_at",
    )

    def snapshot(self):
        """Plain-dict copy of every column, used as the "before" image of a mutation."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}

    def to_dict(self):
        d = {}
        for key, value in self.snapshot().items():
            d[key] = value.isoformat() if hasattr(value, "isoformat") else value
        return d

    def __repr__(self):
        return f"<Pod {self.id}: {self.pod} [{self.status}/{self.sub_status}]>"


class PodStatusHistory(db.Model):
    """
    Immutable ledger entry.

    Exactly one of ``status`` / ``sub_status`` is populated; a mutation that
    changes both tracks writes two rows. Rows are never updated except for the
    actor repoint performed by an identity merge.
    """

    __tablename__ = "pod_status_history"
    __table_args__ = (
        db.Index("ix_pod_status_history_pod_created", "pod_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    pod_id = db.Column(
        db.String(36), db.ForeignKey("pods.id", ondelete="CASCADE"), nullable=False,
    )
    status = db.Column(db.String(30), nullable=True)
    sub_status = db.Column(db.String(40), nullable=True)
    previous_status = db.Column(db.String(30), nullable=True)
    previous_sub_status = db.Column(db.String(40), nullable=True)
    changed_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
        comment="NULL for system-caused changes",
    )
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    pod = db.relationship("Pod", back_populates="status_history")
    changed_by = db.relationship("User")

    @property
    def track(self):
        return "status" if self.status is not None else "substatus"

    def to_dict(self):
        return {
            "id": self.id,
            "pod_id": self.pod_id,
            "status": self.status,
            "sub_status": self.sub_status,
            "previous_status": self.previous_status,
            "previous_sub_status": self.previous_sub_status,
            "changed_by_id": self.changed_by_id,
            "changed_by": (
                {"email": self.changed_by.email, "name": self.changed_by.name}
                if self.changed_by else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PodStatusHistory {self.id}: pod={self.pod_id} {self.track}>"
