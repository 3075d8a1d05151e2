"""Workflow portability application package."""
