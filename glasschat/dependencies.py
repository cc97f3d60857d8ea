from glasschat.config import get_settings
from glasschat.services.chat_service import ChatService


def get_chat_service() -> ChatService:
    return ChatService()


def get_cost_tracker():
    from glasschat.services.cost_tracker import CostTracker
    return CostTracker(get_settings())


def get_optimization_service():
    from glasschat.services.optimization_service import OptimizationService
    return OptimizationService(get_settings())
