from flask import Blueprint

from .. import dashboard, lifecycle
from ..auth import permission_required
from ..extensions import db
from ..models import Machine, get_or_404
from .common import dump, load, ok
from .schemas import MachineBrief, MachineIn, MachineOut, MachineStatusIn

bp_machines = Blueprint("machines", __name__, url_prefix="/api")


@bp_machines.get("/machines")
@permission_required("machine-list")
def list_machines():
    machines = db.session.query(Machine).order_by(Machine.id).all()
    return ok(dump(MachineBrief, machines, many=True))


@bp_machines.post("/machines")
@permission_required("machine-create")
def create_machine():
    data = load(MachineIn)
    machine = Machine(**data)
    db.session.add(machine)
    db.session.commit()
    return ok(dump(MachineOut, machine), "Created successfully", 201)


@bp_machines.get("/machines/<int:machine_id>")
@permission_required("machine-view")
def show_machine(machine_id):
    return ok(dump(MachineOut, get_or_404(Machine, machine_id, "Machine")))


@bp_machines.put("/machines/<int:machine_id>")
@permission_required("machine-edit")
def update_machine(machine_id):
    machine = get_or_404(Machine, machine_id, "Machine")
    for key, value in load(MachineIn, partial=True).items():
        setattr(machine, key, value)
    db.session.commit()
    return ok(dump(MachineOut, machine), "Updated successfully")


@bp_machines.delete("/machines/<int:machine_id>")
@permission_required("machine-delete")
def delete_machine(machine_id):
    lifecycle.delete_machine(get_or_404(Machine, machine_id, "Machine"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_machines.get("/machines/maintenance/soon")
@permission_required("machine-list")
def maintenance_soon():
    return ok(dump(MachineBrief, dashboard.maintenance_soon_query().all(), many=True))


@bp_machines.put("/machines/<int:machine_id>/update-status")
@permission_required("machine-edit")
def update_status(machine_id):
    machine = get_or_404(Machine, machine_id, "Machine")
    data = load(MachineStatusIn)
    lifecycle.update_machine_status(machine, data["etat"], data["date_prochaine_maint"])
    db.session.commit()
    return ok(dump(MachineBrief, machine), "Machine status updated successfully")
