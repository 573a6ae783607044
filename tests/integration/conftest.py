"""
In-process fake of the GameZone REST API, served to the client through httpx.ASGITransport.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi import APIRouter, Body, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from services.credential_store.store import CredentialStore
from services.request_executor.executor import RequestExecutor

VENDOR_TOKEN = "tok-vendor"

VENDOR_USER = {
    "_id": "vendor-1",
    "name": "Arena Owner",
    "email": "owner@arenagames.com",
    "role": "vendor",
    "isVerified": True,
}


class BackendState:
    """Mutable server-side state shared by the fake routes."""

    def __init__(self):
        self.valid_tokens = {VENDOR_TOKEN}
        self.fail_logout = False
        self.settings: Dict[str, Any] = {"enabled": True, "email": True}
        self.push_tokens: List[str] = []
        self.decisions: List[Dict[str, Any]] = []
        self._seq = 0
        self.notifications: List[Dict[str, Any]] = []
        self.add("booking_created", {
            "bookingId": "B1", "bookingAction": "review_required", "userType": "vendor",
        }, _id="n1", title="New booking request")
        self.add("system_announcement", {}, _id="n2", title="Maintenance tonight")
        self.add("booking_confirmed", {"bookingId": "B0", "userType": "gamer"}, _id="n3", title="Your booking is confirmed")

    def add(self, type: str, data: Dict[str, Any], _id: Optional[str] = None, title: str = "") -> Dict[str, Any]:
        self._seq += 1
        notification = {
            "_id": _id or f"srv-{self._seq}",
            "type": type,
            "title": title or type,
            "message": title or type,
            "data": data,
            "isRead": False,
            "createdAt": datetime(2026, 10, 1, 12, self._seq, tzinfo=timezone.utc).isoformat(),
        }
        self.notifications.append(notification)
        return notification


def build_backend(state: BackendState) -> FastAPI:
    app = FastAPI(title="Fake GameZone API")
    api = APIRouter(prefix="/api")

    def require_token(authorization: Optional[str]) -> None:
        token = (authorization or "").removeprefix("Bearer ").strip()
        if token not in state.valid_tokens:
            raise HTTPException(status_code=401, detail="Invalid or expired token")

    @app.exception_handler(HTTPException)
    async def error_body(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @api.post("/auth/google")
    async def google_auth(body: Dict[str, Any] = Body(...)):
        if not body.get("googleId"):
            raise HTTPException(status_code=400, detail="googleId is required")
        return {"success": True, "token": VENDOR_TOKEN, "user": VENDOR_USER, "isNewUser": False, "message": "ok"}

    @api.post("/auth/logout")
    async def logout(authorization: Optional[str] = Header(None)):
        require_token(authorization)
        if state.fail_logout:
            raise HTTPException(status_code=503, detail="Logout service unavailable")
        return {"success": True}

    @api.get("/notifications")
    async def notifications(page: int = 1, limit: int = 50, authorization: Optional[str] = Header(None)):
        require_token(authorization)
        items = sorted(state.notifications, key=lambda n: n["createdAt"], reverse=True)
        start = (page - 1) * limit
        return {
            "success": True,
            "notifications": items[start:start + limit],
            "pagination": {"currentPage": page, "totalPages": 1, "totalItems": len(items), "hasNext": False, "hasPrev": page > 1},
            "unreadCount": sum(1 for n in items if not n["isRead"]),
        }

    @api.get("/notifications/unread-count")
    async def unread_count(authorization: Optional[str] = Header(None)):
        require_token(authorization)
        return {"success": True, "unreadCount": sum(1 for n in state.notifications if not n["isRead"])}

    @api.put("/notifications/read")
    async def mark_read(body: Dict[str, Any] = Body(...), authorization: Optional[str] = Header(None)):
        require_token(authorization)
        for n in state.notifications:
            if n["_id"] in body.get("ids", []):
                n["isRead"] = True
        return {"success": True}

    @api.put("/notifications/read-all")
    async def mark_all_read(authorization: Optional[str] = Header(None)):
        require_token(authorization)
        for n in state.notifications:
            n["isRead"] = True
        return {"success": True}

    @api.delete("/notifications/{notification_id}")
    async def delete(notification_id: str, authorization: Optional[str] = Header(None)):
        require_token(authorization)
        before = len(state.notifications)
        state.notifications = [n for n in state.notifications if n["_id"] != notification_id]
        if len(state.notifications) == before:
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"success": True}

    @api.get("/notifications/settings")
    async def get_settings(authorization: Optional[str] = Header(None)):
        require_token(authorization)
        return {"success": True, "settings": state.settings}

    @api.put("/notifications/settings")
    async def update_settings(body: Dict[str, Any] = Body(...), authorization: Optional[str] = Header(None)):
        require_token(authorization)
        if "pushToken" in body:
            state.push_tokens.append(body.pop("pushToken"))
        state.settings.update(body)
        return {"success": True, "settings": state.settings}

    @api.put("/vendor/bookings/{booking_id}/confirm")
    async def confirm(booking_id: str, body: Dict[str, Any] = Body(default={}), authorization: Optional[str] = Header(None)):
        require_token(authorization)
        if any(d["bookingId"] == booking_id for d in state.decisions):
            raise HTTPException(status_code=409, detail="Booking has already been processed")
        state.decisions.append({"bookingId": booking_id, "decision": "confirmed", **body})
        state.add("booking_confirmed", {"bookingId": booking_id, "userType": "vendor"}, title="You confirmed a booking")
        return {"success": True}

    @api.put("/vendor/bookings/{booking_id}/decline")
    async def decline(booking_id: str, body: Dict[str, Any] = Body(...), authorization: Optional[str] = Header(None)):
        require_token(authorization)
        if not str(body.get("reason") or "").strip():
            raise HTTPException(status_code=400, detail="Reason is required")
        state.decisions.append({"bookingId": booking_id, "decision": "declined", **body})
        state.add("booking_cancelled", {"bookingId": booking_id, "userType": "vendor"}, title="You declined a booking")
        return {"success": True}

    app.include_router(api)
    return app


@pytest.fixture
def backend() -> BackendState:
    return BackendState()


@pytest.fixture
def backend_executor(backend, mock_redis, sleeps):
    """RequestExecutor talking to the fake backend over ASGI."""
    async def no_sleep(delay: float) -> None:
        sleeps.append(delay)

    store = CredentialStore(mock_redis, key_prefix="it:")
    return RequestExecutor(
        store,
        base_url="http://gamezone.local/api",
        transport=httpx.ASGITransport(app=build_backend(backend)),
        sleep=no_sleep,
    )
