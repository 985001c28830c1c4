"""
Runtime wiring shared by the route modules.

The entrypoint builds one Runtime and registers it on the Flask app; route
handlers reach it through get_runtime() instead of module-level globals, so
tests can build an app around their own store.
"""
from dataclasses import dataclass

from flask import current_app

from newflow.config import AgentConfig
from newflow.expiry import ExpiryScheduler
from newflow.notifications import NotificationActions
from newflow.patient_search import PatientSearch
from newflow.store import Store
from newflow.sync import NotificationService

EXTENSION_KEY = "newflow"


@dataclass
class Runtime:
    config: AgentConfig
    store: Store
    actions: NotificationActions
    service: NotificationService
    expiry: ExpiryScheduler
    search: PatientSearch


def get_runtime() -> Runtime:
    return current_app.extensions[EXTENSION_KEY]
