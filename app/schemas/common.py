from pydantic import BaseModel
from typing import Any


# ─── Error Shapes (OpenAPI docs) ──────────────────────────────────────────────
class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorBody(BaseModel):
    code: str
    details: list[ErrorDetail] | None = None
    field: str | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx answer. The optional keys appear on 429s only."""
    success: bool = False
    message: str
    error: ErrorBody
    retryAfter: int | None = None
    remaining: int | None = None
    reason: str | None = None
    expiresAt: str | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# ─── Helper Functions ─────────────────────────────────────────────────────────
def success_response(message: str, **fields: Any) -> dict:
    """Flat success body: `fields` sit beside `message` (public OTP/session routes)."""
    return {"success": True, "message": message, **fields}


def data_response(message: str, data: Any = None) -> dict:
    """Success body wrapping `data` (admin routes)."""
    return {"success": True, "message": message, "data": data}


def paginated_response(message: str, data: list, total: int, page: int, limit: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit > 0 else 0
    return {
        "success": True,
        "message": message,
        "data": data,
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }
