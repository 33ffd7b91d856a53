"""Core HR module — Employee model, reporting lines, schemas and services."""

from leaveflow.core_hr.models import Employee

__all__ = ["Employee"]
