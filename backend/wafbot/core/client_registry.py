"""
Global Client Registry
Holds the process-wide orchestrator and engine clients built at startup
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from wafbot.orchestrator.processor import QueryOrchestrator
    from wafbot.services.athena_client import EngineClientRegistry


class ClientRegistry:
    """Global registry for client instances"""

    def __init__(self):
        self._engine_clients: Optional["EngineClientRegistry"] = None
        self._query_orchestrator: Optional["QueryOrchestrator"] = None

    def set_engine_clients(self, clients: "EngineClientRegistry"):
        """Set the per-region Athena client registry"""
        self._engine_clients = clients

    def get_engine_clients(self) -> Optional["EngineClientRegistry"]:
        return self._engine_clients

    def set_query_orchestrator(self, orchestrator: "QueryOrchestrator"):
        """Set the global query orchestrator instance"""
        self._query_orchestrator = orchestrator

    def get_query_orchestrator(self) -> Optional["QueryOrchestrator"]:
        """Get the global query orchestrator instance"""
        return self._query_orchestrator

    def clear(self) -> None:
        self._engine_clients = None
        self._query_orchestrator = None


# Global registry instance
registry = ClientRegistry()
