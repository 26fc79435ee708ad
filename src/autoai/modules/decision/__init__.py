"""
决策模块
"""
from .errors import DecisionError, DecisionErrorKind
from .gateway import Decision, DecisionGateway
from .prompt import PromptBuilder
from .service import ConnectionDiagnostics, DecisionService, DecisionServiceError, OpenAICompatibleService

__all__ = [
    "DecisionError",
    "DecisionErrorKind",
    "Decision",
    "DecisionGateway",
    "PromptBuilder",
    "ConnectionDiagnostics",
    "DecisionService",
    "DecisionServiceError",
    "OpenAICompatibleService",
]
