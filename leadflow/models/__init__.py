from leadflow.models.audit import AuditLog
from leadflow.crm.models import (
    ICP,
    Activity,
    Contact,
    Deal,
    Lead,
    LeadContact,
    LeadICP,
    Organization,
    Partner,
    User,
)
from leadflow.cadences.models import Cadence, CadenceStep, LeadCadence, LeadCadenceActivity
from leadflow.sharing.models import SharedEntity

__all__ = [
    "AuditLog",
    "Activity",
    "Cadence",
    "CadenceStep",
    "Contact",
    "Deal",
    "ICP",
    "Lead",
    "LeadCadence",
    "LeadCadenceActivity",
    "LeadContact",
    "LeadICP",
    "Organization",
    "Partner",
    "SharedEntity",
    "User",
]
