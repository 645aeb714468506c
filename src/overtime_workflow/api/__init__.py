"""HTTP API for the overtime workflow."""

from overtime_workflow.api.app import create_app

__all__ = ["create_app"]
