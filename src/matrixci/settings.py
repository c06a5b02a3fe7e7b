from __future__ import annotations
import os

DEFAULT_WORKFLOW = "matrixci_workflow.py"

WORKFLOW = os.environ.get("MATRIXCI_WORKFLOW")
WORKERS = int(os.environ["MATRIXCI_WORKERS"]) if os.environ.get("MATRIXCI_WORKERS") else None
REPORT_PATH = os.environ.get("MATRIXCI_REPORT")
CHANNEL_VAR = os.environ.get("MATRIXCI_CHANNEL_VAR", "MATRIXCI_CHANNEL")
