"""
Dashboard and report aggregates.

Everything here is a pure view over scoped reads from a ClinicDataClient,
so the numbers follow the same clinic/mode scoping (and the same offline
cache) as the lists the pages show. Day boundaries use the clinic timezone.
"""
from collections import OrderedDict, defaultdict
from datetime import date, timedelta
from typing import Optional, Tuple

from core.time_utils import as_utc, local_date, local_today, now_utc

DateRange = Optional[Tuple[date, date]]


def _in_range(day: date, date_range: DateRange) -> bool:
    if not date_range:
        return True
    start, end = date_range
    return start <= day <= end


def _created(entity):
    # Rows queued offline have no server timestamp yet
    return as_utc(entity.created_at) if entity.created_at else now_utc()


def _visit_day(visit, tz: str) -> date:
    return local_date(_created(visit), tz)


def get_dashboard_stats(client, mode=None) -> dict:
    tz = client.context.timezone
    today = local_today(tz)
    month_start = today.replace(day=1)
    week_ago = now_utc() - timedelta(days=7)

    patients = client.list("patients", mode=mode)
    visits = client.list("visits", mode=mode)
    expenses = client.list("expenses", mode=mode)

    visits_today = [v for v in visits if _visit_day(v, tz) == today]
    monthly_visits = [v for v in visits if _visit_day(v, tz) >= month_start]

    today_income = sum(v.fee or 0 for v in visits_today)
    monthly_income = sum(v.fee or 0 for v in monthly_visits)
    monthly_expenses = sum(e.amount or 0 for e in expenses if e.date >= month_start)

    names = {p.id: p.name for p in patients}
    recent = sorted(visits, key=_created, reverse=True)[:10]

    return {
        "patient_count": len(patients),
        "visits_today": len(visits_today),
        "visits_this_week": sum(1 for v in visits if _created(v) >= week_ago),
        "today_income": today_income,
        "monthly_income": monthly_income,
        "monthly_expenses": monthly_expenses,
        "total_revenue": sum(v.fee or 0 for v in visits),
        "total_expenses": sum(e.amount or 0 for e in expenses),
        "profit": monthly_income - monthly_expenses,
        "recent_activity": [
            {
                "id": v.id,
                "created_at": _created(v),
                "fee": v.fee or 0,
                "doctor_mode": v.doctor_mode,
                "patient_name": names.get(v.patient_id, "Unknown"),
            }
            for v in recent
        ],
    }


def get_patient_stats(client, date_range: DateRange = None, mode=None) -> dict:
    tz = client.context.timezone
    cutoff = local_today(tz) - timedelta(days=30)

    patients = [p for p in client.list("patients", mode=mode) if _in_range(local_date(_created(p), tz), date_range)]
    visited = {v.patient_id for v in client.list("visits", mode=mode)}

    return {
        "total_patients": len(patients),
        "new_patients": sum(1 for p in patients if local_date(_created(p), tz) >= cutoff),
        "active_patients": len(visited),
        "patients": patients,
    }


def get_visit_trends(client, date_range: DateRange = None, mode=None) -> list:
    """Per-day visit count and income, oldest day first."""
    tz = client.context.timezone
    days = defaultdict(lambda: {"visits": 0, "income": 0.0})

    for visit in client.list("visits", mode=mode):
        day = _visit_day(visit, tz)
        if not _in_range(day, date_range):
            continue
        days[day]["visits"] += 1
        days[day]["income"] += visit.fee or 0

    return [{"day": day, **totals} for day, totals in sorted(days.items())]


def get_expense_breakdown(client, date_range: DateRange = None, mode=None) -> dict:
    expenses = [e for e in client.list("expenses", mode=mode) if _in_range(e.date, date_range)]
    expenses.sort(key=lambda e: e.date)

    categories = OrderedDict()
    for expense in expenses:
        categories[expense.category] = categories.get(expense.category, 0) + (expense.amount or 0)

    return {
        "breakdown": [{"category": category, "amount": amount} for category, amount in categories.items()],
        "expenses": expenses,
    }
