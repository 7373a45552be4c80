"""

    Scheduled task routes for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module contains the routes invoked by the Google Cloud Scheduler
    (or App Engine cron, or a Cloud Tasks queue) to run the daily jobs
    in maintenance.py. The routes refuse requests that do not carry
    the headers set by these services, except on a local development
    server.

"""

from __future__ import annotations

from typing import Any, Dict, Optional, cast

from dataclasses import asdict
from datetime import date

from flask import Blueprint, request

from config import ResponseType, running_local
from basics import RequestData, get_db, get_notifier, jsonify
from errors import ValidationError
from maintenance import run_daily_maintenance, send_daily_reminders


tasks = tasks_blueprint = Blueprint("tasks", __name__, url_prefix="/tasks")


def is_scheduled_request() -> bool:
    """Return True if the request comes from a Google Cloud service
    that is allowed to trigger scheduled tasks"""
    headers: Dict[str, str] = cast(Any, request).headers
    task_queue = headers.get("X-AppEngine-QueueName", "") != ""
    cloud_scheduler = request.environ.get("HTTP_X_CLOUDSCHEDULER", "") == "true"
    cron_job = headers.get("X-Appengine-Cron", "") == "true"
    return any((task_queue, cloud_scheduler, cron_job, running_local))


def _target_date() -> Optional[date]:
    """The optional date=YYYY-MM-DD parameter of a task request"""
    rq = RequestData(request, use_args=True)
    value = rq.get("date")
    if not value:
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid date")


def _report(report: Any) -> Dict[str, Any]:
    result = asdict(report)
    result["date"] = report.date.isoformat()
    return result


@tasks.route("/maintenance", methods=["GET", "POST"])
def maintenance_task() -> ResponseType:
    """Create today's game if needed and assign variants to all users"""
    if not is_scheduled_request():
        # Only allow bona fide Google Cloud Scheduler or Task Queue requests
        return "Restricted URL", 403
    report = run_daily_maintenance(get_db(), _target_date())
    return jsonify(_report(report))


@tasks.route("/reminders", methods=["GET", "POST"])
def reminders_task() -> ResponseType:
    """Send push reminders to users who have not played today's game"""
    if not is_scheduled_request():
        return "Restricted URL", 403
    report = send_daily_reminders(get_db(), get_notifier(), _target_date())
    return jsonify(_report(report))
