"""
Domain error taxonomy and the FastAPI handlers that turn it into JSON.

Services raise these; routers never build error responses by hand.
InternalError never exposes its cause to the client.
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class OrderError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"detail": self.message}


class InvalidInput(OrderError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or incomplete order data"


class InsufficientStock(OrderError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        )

    def to_body(self) -> dict:
        return {
            "detail": self.message,
            "productId": self.product_id,
            "available": self.available,
            "requested": self.requested,
        }


class NotFound(OrderError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class StateConflict(OrderError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)

    def to_body(self) -> dict:
        return {"detail": self.message, "currentStatus": self.current_status}


class GatewayError(OrderError):
    default_message = "Payment gateway error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message)
        # Only surface the processor's own code when it is an HTTP error code
        if status_code is not None and 400 <= status_code <= 599:
            self.status_code = status_code


class InternalError(OrderError):
    pass


async def _order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": InvalidInput.default_message, "errors": errors},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": InternalError.default_message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderError, _order_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
