from flask import Blueprint

from .. import dashboard
from ..auth import login_required
from .common import dump, ok
from .schemas import InterventionOut, MachineBrief

bp_dashboard = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@bp_dashboard.get("/statistics")
@login_required
def statistics():
    return ok(dashboard.statistics())


@bp_dashboard.get("/urgent-interventions")
@login_required
def urgent_interventions():
    return ok(dump(InterventionOut, dashboard.urgent_interventions(), many=True))


@bp_dashboard.get("/upcoming-maintenance")
@login_required
def upcoming_maintenance():
    return ok(dump(MachineBrief, dashboard.upcoming_maintenance(), many=True))


@bp_dashboard.get("/recent-activities")
@login_required
def recent_activities():
    return ok(dashboard.recent_activities())
