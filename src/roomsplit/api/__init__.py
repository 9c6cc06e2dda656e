"""API Gateway Lambda handler for groups, bills and summaries."""

from .handler import Dependencies, handle_request, lambda_handler

__all__ = [
    "lambda_handler",
    "handle_request",
    "Dependencies",
]
