from .agent_service import AgentService, Responder, echo_responder

__all__ = ["AgentService", "Responder", "echo_responder"]
