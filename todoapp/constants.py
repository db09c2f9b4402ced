"""
Constants for task status, priority and client timing.
"""
from __future__ import annotations

from datetime import timedelta

# Task status (derived on the client; only the completed flag is persisted)
TASK_STATUS_ACTIVE = "active"
TASK_STATUS_COMPLETED = "completed"
TASK_STATUS_SNOOZED = "snoozed"

# Priority (P0 = most urgent)
PRIORITY_P0 = "P0"
PRIORITY_P1 = "P1"
PRIORITY_P2 = "P2"
PRIORITY_P3 = "P3"

PRIORITIES = (PRIORITY_P0, PRIORITY_P1, PRIORITY_P2, PRIORITY_P3)
DEFAULT_PRIORITY = PRIORITY_P2

PRIORITY_LABELS = {
    PRIORITY_P0: "Urgent",
    PRIORITY_P1: "High",
    PRIORITY_P2: "Medium",
    PRIORITY_P3: "Low",
}

# Undo actions (UndoAction.kind)
UNDO_CREATE = "create"
UNDO_UPDATE = "update"
UNDO_DELETE = "delete"
UNDO_TOGGLE = "toggle"
UNDO_BULK = "bulk"
UNDO_BULK_DELETE = "bulk_delete"

UNDO_WINDOW = timedelta(milliseconds=5000)
UNDO_CAPACITY = 20

# Housekeeping sweeps
SNOOZE_SWEEP_INTERVAL_SECONDS = 60
COMPLETED_SWEEP_INTERVAL_SECONDS = 60 * 60
COMPLETED_TTL = timedelta(hours=48)

# Local key-value store
IDENTIFIER_STORAGE_KEY = "todoApp:identifier"

# Webhook
SIGNATURE_HEADER = "x-workflow-signature"

# Notification kinds
NOTIFY_SUCCESS = "success"
NOTIFY_ERROR = "error"
NOTIFY_INFO = "info"
