"""Workflow execution engine components.

Provides:
- Settings loaded from .env
- Structured logging
- Workflow and account persistence
- The step executor, connectors and the resume scheduler bridge
"""
