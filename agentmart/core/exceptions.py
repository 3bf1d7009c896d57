from fastapi import HTTPException, status


class AgentNotFoundError(HTTPException):
    def __init__(self, agent_id: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"Agent with ID {agent_id} not found")


class UserNotFoundError(HTTPException):
    def __init__(self, user_id: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")


class OrderNotFoundError(HTTPException):
    def __init__(self, order_id: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order with ID {order_id} not found")


class PaymentNotFoundError(HTTPException):
    def __init__(self, payment_id: str, *, by_transaction: bool = False):
        label = "transaction ID" if by_transaction else "ID"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payment with {label} {payment_id} not found",
        )


class ReviewNotFoundError(HTTPException):
    def __init__(self, review_id: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"Review with ID {review_id} not found")


class ValidationError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Invalid or missing authentication"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class InvalidPaymentStateError(HTTPException):
    def __init__(self, current: str, expected: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payment is '{current}', expected '{expected}'",
        )


class CheckoutSessionError(HTTPException):
    """The payment provider rejected or failed a checkout-session call."""

    def __init__(self, detail: str = "Could not create checkout session"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class FulfillmentError(HTTPException):
    def __init__(self, detail: str = "Could not process successful payment"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class SubscriptionNotFoundError(HTTPException):
    def __init__(self, subscription_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subscription with ID {subscription_id} not found",
        )


class TokenTransactionNotFoundError(HTTPException):
    def __init__(self, transaction_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Token transaction with ID {transaction_id} not found",
        )


class InsufficientTokensError(HTTPException):
    def __init__(self, balance: int, required: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Insufficient token balance: {balance} available, {required} required",
        )
