"""
Utils Package

Error reporting, observer plumbing and logging setup.
"""

from .error_handler import (
    ConsoleError,
    ErrorCategory,
    ErrorInfo,
    ErrorKind,
    ErrorReporter,
    OperationResult,
)
from .observer import Subject, Subscription, SubscriptionGroup
from .logger import setup_logger

__all__ = [
    'ConsoleError',
    'ErrorCategory',
    'ErrorInfo',
    'ErrorKind',
    'ErrorReporter',
    'OperationResult',
    'Subject',
    'Subscription',
    'SubscriptionGroup',
    'setup_logger',
]
