"""Logistics: platform detection and multi-platform build/deploy coordination."""

from .base import PlatformBuilder, CommandResult, run_command
from .platform_classifier import PlatformClassifier, detect_platforms
from .web_builder import VercelWebBuilder
from .android_builder import AndroidBuilder
from .logistics_executor import LogisticsExecutor

__all__ = [
    "PlatformBuilder",
    "CommandResult",
    "run_command",
    "PlatformClassifier",
    "detect_platforms",
    "VercelWebBuilder",
    "AndroidBuilder",
    "LogisticsExecutor",
]
