"""
Agregações do painel (somente leitura).
"""
import calendar
from datetime import date

from flask import current_app
from sqlalchemy import extract, func

from .extensions import db
from .models import Intervention, Machine, Maintenance, Renovation
from .workflow import COMPLETED


def add_months(day, months):
    """Soma meses de calendário, limitando ao último dia do mês (31/01 + 1 -> 28/02)."""
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def _soon_window(today=None):
    today = today or date.today()
    return today, add_months(today, current_app.config["MAINTENANCE_SOON_MONTHS"])


def _limit(limit):
    return limit or current_app.config["DASHBOARD_LIST_LIMIT"]


def _count_by(column, label):
    rows = db.session.query(column, func.count()).group_by(column).order_by(column).all()
    return [{label: value, "total": total} for value, total in rows]


def maintenance_soon_query(today=None):
    start, end = _soon_window(today)
    return (
        db.session.query(Machine)
        .filter(Machine.date_prochaine_maint.isnot(None))
        .filter(Machine.date_prochaine_maint >= start, Machine.date_prochaine_maint <= end)
        .order_by(Machine.date_prochaine_maint)
    )


def _urgent_query():
    return db.session.query(Intervention).filter(
        Intervention.urgence.is_(True), Intervention.statut != COMPLETED
    )


def statistics(today=None):
    renovation_cost = db.session.query(func.coalesce(func.sum(Renovation.cout), 0)).scalar()
    return {
        "machines": {
            "byStatus": _count_by(Machine.etat, "etat"),
            "maintenanceSoon": maintenance_soon_query(today).count(),
            "total": db.session.query(Machine).count(),
        },
        "interventions": {
            "byStatus": _count_by(Intervention.statut, "statut"),
            "byType": _count_by(Intervention.type_operation, "typeOperation"),
            "urgent": _urgent_query().count(),
            "total": db.session.query(Intervention).count(),
        },
        "maintenance": {
            "byType": _count_by(Maintenance.type_maintenance, "typeMaintenance"),
            "total": db.session.query(Maintenance).count(),
        },
        "renovation": {
            "count": db.session.query(Renovation).count(),
            "totalCost": float(renovation_cost),
        },
    }


def urgent_interventions(limit=None):
    return _urgent_query().order_by(Intervention.date, Intervention.id).limit(_limit(limit)).all()


def upcoming_maintenance(limit=None, today=None):
    return maintenance_soon_query(today).limit(_limit(limit)).all()


def recent_activities(limit=None):
    """Feed misto de intervenções e manutenções, mais recentes primeiro."""
    limit = _limit(limit)
    per_kind = max(limit // 2, 1)

    interventions = (
        db.session.query(Intervention)
        .order_by(Intervention.date.desc(), Intervention.id.desc())
        .limit(per_kind)
        .all()
    )
    maintenances = (
        db.session.query(Maintenance)
        .order_by(Maintenance.intervention_id.desc())
        .limit(per_kind)
        .all()
    )

    activities = [
        {
            "type": "intervention",
            "date": i.date,
            "id": i.id,
            "machine": i.machine.nom,
            "operation": i.type_operation,
            "status": i.statut,
            "users": [u.nom for u in i.utilisateurs],
        }
        for i in interventions
    ]
    activities += [
        {
            "type": "maintenance",
            "date": m.intervention.date,
            "id": m.intervention_id,
            "machine": m.intervention.machine.nom,
            "maintenance_type": m.type_maintenance,
            "status": m.intervention.statut,
        }
        for m in maintenances
    ]
    activities.sort(key=lambda a: a["date"], reverse=True)
    for activity in activities:
        activity["date"] = activity["date"].isoformat()
    return activities[:limit]


def maintenance_statistics(recent_limit=5):
    recent = (
        db.session.query(Maintenance)
        .order_by(Maintenance.intervention_id.desc())
        .limit(recent_limit)
        .all()
    )
    return {
        "total": db.session.query(Maintenance).count(),
        "byType": _count_by(Maintenance.type_maintenance, "typeMaintenance"),
        "recent": recent,
    }


def renovation_statistics(months=12):
    total_cost, average = db.session.query(
        func.coalesce(func.sum(Renovation.cout), 0), func.avg(Renovation.duree_estimee)
    ).one()

    year = extract("year", Intervention.date)
    month = extract("month", Intervention.date)
    rows = (
        db.session.query(year, month, func.count(), func.coalesce(func.sum(Renovation.cout), 0))
        .join(Renovation, Renovation.intervention_id == Intervention.id)
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(months)
        .all()
    )
    return {
        "total": db.session.query(Renovation).count(),
        "totalCost": float(total_cost),
        "averageDuration": float(average) if average is not None else None,
        "byMonth": [
            {"year": int(y), "month": int(m), "count": c, "total_cost": float(cost)}
            for y, m, c, cost in rows
        ],
    }
