"""Completion detection and orchestration.

Public API:
    CompletionOrchestrator -- Runs one episode per target
    CompletionStrategy -- Abstract base class for strategies
    TargetSession -- Delivery target and live-episode slot
    ResponseForwarder -- Forwards response files in the background
    register_strategy / create_strategy -- Strategy registry
    format_response -- Outbound text formatting
"""

from replywatch.completion.base import CompletionStrategy
from replywatch.completion.formatting import format_response
from replywatch.completion.forwarder import ResponseForwarder
from replywatch.completion.orchestrator import CompletionOrchestrator
from replywatch.completion.registry import (
    available_strategies,
    create_strategy,
    register_strategy,
)
from replywatch.completion.session import TargetSession

__all__ = [
    "CompletionOrchestrator",
    "CompletionStrategy",
    "ResponseForwarder",
    "TargetSession",
    "available_strategies",
    "create_strategy",
    "format_response",
    "register_strategy",
]
