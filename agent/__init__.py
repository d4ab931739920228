"""
AI Agent package for the speech evaluation backend.
All Azure agents inherit from BaseAzureAgent and implement the process() method.
"""
from .base_azure_agent import BaseAzureAgent

__all__ = ["BaseAzureAgent"]
