"""
Base Azure Agent class for Azure-based AI agents.
Provides abstract interface for agents using Azure Cognitive Services.
"""
from abc import ABC, abstractmethod


class BaseAzureAgent(ABC):
    """
    Abstract base class for all Azure-based AI agents.

    All Azure agents must:
    1. Inherit from BaseAzureAgent
    2. Implement the process() method
    3. Handle their own Azure service clients (e.g., Azure Speech SDK)

    Agents hold configuration only. Every SDK object they create belongs to
    the call that created it and is released before the call returns.

    Example:
        >>> class MyAzureAgent(BaseAzureAgent):
        ...     def __init__(self, subscription_key: str, region: str):
        ...         self.subscription_key = subscription_key
        ...         self.region = region
        ...
        ...     async def process(self, data: bytes) -> dict:
        ...         # Azure service processing logic
        ...         return {"result": "..."}
        ...
        >>> agent = MyAzureAgent(subscription_key="...", region="eastus")
        >>> result = await agent.process(data)
    """

    @abstractmethod
    async def process(self, *args, **kwargs):
        """
        Core processing method that each Azure agent must implement.

        Args:
            *args: Agent-specific positional arguments
            **kwargs: Agent-specific keyword arguments

        Returns:
            Agent-specific result (varies by implementation)

        Raises:
            Exception: If Azure service processing fails
        """
        pass
