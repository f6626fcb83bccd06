"""
stackeval Shared Module
=======================

Configuration, logging and console utilities used by every stackeval
component.
"""

from shared.config import StackEvalConfig, get_config

__all__ = ["StackEvalConfig", "get_config"]
