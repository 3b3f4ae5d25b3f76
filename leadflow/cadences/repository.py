from __future__ import annotations

from leadflow.cadences.models import Cadence, LeadCadence
from leadflow.platform.security.repository import OwnedRepository


class CadenceRepository(OwnedRepository):
    model = Cadence


class LeadCadenceRepository(OwnedRepository):
    model = LeadCadence
