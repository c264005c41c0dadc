"""Command-line interface package for the plan validator."""

from .app import (
    EXIT_ERROR,
    EXIT_OK,
    EXIT_POLICY_FAILURE,
    ValidationReport,
    build_parser,
    create_service,
    main,
    render_table,
    run,
)

__all__ = [
    "EXIT_ERROR",
    "EXIT_OK",
    "EXIT_POLICY_FAILURE",
    "ValidationReport",
    "build_parser",
    "create_service",
    "main",
    "render_table",
    "run",
]
