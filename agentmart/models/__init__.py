from agentmart.models.user import User, user_owned_agents
from agentmart.models.agent import Agent
from agentmart.models.order import Order
from agentmart.models.payment import Payment
from agentmart.models.review import Review
from agentmart.models.fulfillment import FulfillmentRecord
from agentmart.models.subscription import Subscription
from agentmart.models.token_transaction import TokenTransaction

__all__ = [
    "User",
    "user_owned_agents",
    "Agent",
    "Order",
    "Payment",
    "Review",
    "FulfillmentRecord",
    "Subscription",
    "TokenTransaction",
]
