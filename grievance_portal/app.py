# grievance_portal/app.py
import datetime
import time
from contextlib import asynccontextmanager
from typing import Optional, Callable

# Load .env BEFORE building settings
from dotenv import load_dotenv
load_dotenv(override=True)

from fastapi import FastAPI, Request, Depends, Path, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, PlainTextResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from grievance_portal import monitoring
from grievance_portal import errors
from grievance_portal.auth import AdminService, build_limiter, decode_access_token
from grievance_portal.config import Settings
from grievance_portal.db import Database
from grievance_portal.lifecycle import StatusLifecycle
from grievance_portal.notifier import build_notifier
from grievance_portal.otp import OtpLedger, normalize_email
from grievance_portal.schemas import (
    SendOtpRequest, VerifyOtpRequest, GrievanceSubmission, StatusUpdate,
    LoginRequest, ChangePasswordRequest,
)
from grievance_portal.secret_store import SecretStore
from grievance_portal.store import GrievanceStore
from grievance_portal.submission import SubmissionWorkflow


class Portal:
    """Every component, wired once from Settings."""

    def __init__(self, settings: Settings, notifier=None,
                 clock: Optional[Callable[[], datetime.datetime]] = None):
        self.settings = settings
        self.db = Database(settings.database_url)
        self.secrets = SecretStore(settings.encryption_key)
        self.notifier = notifier if notifier is not None else build_notifier(settings)
        self.ledger = OtpLedger(self.db, self.notifier, settings, clock=clock)
        self.store = GrievanceStore(self.db, self.secrets, clock=clock)
        self.lifecycle = StatusLifecycle(self.store, clock=clock)
        self.workflow = SubmissionWorkflow(self.ledger, self.store, self.secrets, self.notifier, settings)
        self.admins = AdminService(self.db, settings)
        self.otp_limiter = build_limiter(settings)

    def init(self):
        self.db.init_db()
        self.admins.bootstrap()


_STATUS_BY_CLASS = [
    (errors.RateLimitError, 429),
    (errors.ValidationError, 400),
    (errors.AuthorizationError, 401),
    (errors.NotFoundError, 404),
    (errors.StateError, 409),
    (errors.DependencyError, 500),
]

_STATUS_BY_CODE = {
    errors.E_EMAIL_NOT_VERIFIED: 403,
    errors.E_OTP_CONSUMED: 400,
    errors.E_OTP_EXPIRED: 400,
    errors.E_OTP_MISMATCH: 400,
}


def http_status_for(exc: errors.PortalError) -> int:
    if exc.error_code in _STATUS_BY_CODE:
        return _STATUS_BY_CODE[exc.error_code]
    for cls, status in _STATUS_BY_CLASS:
        if isinstance(exc, cls):
            return status
    return 500


_bearer = HTTPBearer(auto_error=False)


def create_app(portal: Optional[Portal] = None) -> FastAPI:
    if portal is None:
        portal = Portal(Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        portal.init()
        monitoring.logger.info("Grievance portal started", extra={"database": portal.db.engine.url.render_as_string()})
        yield
        portal.db.dispose()

    app = FastAPI(title="Grievance Portal API", lifespan=lifespan)
    app.state.portal = portal

    # -----------------------------------------------------------------------
    # Metrics middleware
    # -----------------------------------------------------------------------
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        method = request.method
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        except Exception:
            monitoring.logger.exception("Unhandled exception in request", extra={"path": request.url.path})
            raise
        finally:
            # route template keeps label cardinality bounded
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            monitoring.observe_request(start, endpoint, method, status)

    @app.exception_handler(errors.PortalError)
    async def portal_error_handler(request: Request, exc: errors.PortalError):
        status = http_status_for(exc)
        content = {"success": False, "error_code": exc.error_code, "message": exc.message}
        if isinstance(exc, errors.ValidationError) and exc.fields:
            content["fields"] = exc.fields
        resp = JSONResponse(status_code=status, content=content)
        if status == 429:
            resp.headers["Retry-After"] = "60"
        return resp

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = exc.errors()
        fields = []
        for err in problems:
            names = [str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query")]
            if names and names[-1] not in fields:
                fields.append(names[-1])
        first = problems[0] if problems else {}
        message = "Invalid request"
        if fields:
            message = f"Invalid value for {fields[0]}: {first.get('msg', 'invalid')}"
        return JSONResponse(
            status_code=400,
            content={"success": False, "error_code": errors.E_VALIDATION, "message": message, "fields": fields},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # already logged with traceback by metrics_middleware
        return JSONResponse(
            status_code=500,
            content={"success": False, "error_code": errors.E_INTERNAL, "message": "Internal server error"},
        )

    def require_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)):
        if credentials is None or not credentials.credentials:
            raise errors.AuthorizationError("No token provided")
        return decode_access_token(credentials.credentials, portal.settings)

    # -----------------------------------------------------------------------
    # Health + metrics
    # -----------------------------------------------------------------------
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/health")
    async def api_health():
        return {"success": True, "message": "Server is running",
                "timestamp": datetime.datetime.utcnow().isoformat() + "Z"}

    @app.get("/metrics")
    async def metrics():
        if not monitoring.PROMETHEUS_ENABLED:
            return PlainTextResponse("Prometheus disabled", status_code=404)
        payload, content_type = monitoring.prometheus_metrics_response()
        return Response(content=payload, media_type=content_type)

    # -----------------------------------------------------------------------
    # Public grievance routes
    # -----------------------------------------------------------------------
    @app.post("/api/send-otp")
    async def send_otp(req: SendOtpRequest):
        email = normalize_email(req.email)
        # only institutional addresses ever get a limiter slot
        portal.ledger.check_issuable(email)
        allowed, _ = portal.otp_limiter.allow_request(email)
        if not allowed:
            raise errors.RateLimitError("Too many OTP requests. Please wait a minute and try again.")
        await portal.ledger.issue(email)
        return {"success": True, "message": "OTP sent to your email"}

    @app.post("/api/verify-otp")
    def verify_otp(req: VerifyOtpRequest):
        portal.ledger.verify(req.email, req.otp)
        return {"success": True, "message": "OTP verified successfully"}

    @app.post("/api/submit-grievance")
    async def submit_grievance(req: GrievanceSubmission):
        tracking_id = await portal.workflow.submit(req.to_payload())
        return {
            "success": True,
            "message": "Grievance submitted successfully! Check your email for tracking ID.",
            "trackingId": tracking_id,
        }

    @app.get("/api/grievances/track/{grievance_id}")
    def track_grievance(grievance_id: int = Path(..., description="Tracking ID")):
        view = portal.store.tracking_view(grievance_id)
        if view is None:
            raise errors.NotFoundError("Grievance not found. Please check your tracking ID.")
        return view

    # -----------------------------------------------------------------------
    # Admin authentication
    # -----------------------------------------------------------------------
    @app.post("/api/admin/login")
    def admin_login(req: LoginRequest):
        result = portal.admins.login(req.username, req.password)
        return {"success": True, "message": "Login successful", **result}

    @app.post("/api/admin/change-password")
    def change_password(req: ChangePasswordRequest, admin=Depends(require_admin)):
        portal.admins.change_password(admin["id"], req.current_password, req.new_password)
        return {"success": True, "message": "Password changed successfully"}

    @app.get("/api/admin/profile")
    def admin_profile(admin=Depends(require_admin)):
        return {"success": True, "data": portal.admins.profile(admin["id"])}

    @app.get("/api/admin/verify-token")
    def verify_token(admin=Depends(require_admin)):
        return {
            "success": True,
            "message": "Token is valid",
            "admin": {"id": admin["id"], "username": admin["username"], "role": admin["role"]},
        }

    # -----------------------------------------------------------------------
    # Admin grievance routes
    # -----------------------------------------------------------------------
    @app.get("/api/grievances")
    def list_grievances(status: Optional[str] = Query(None), role: Optional[str] = Query(None),
                        search: Optional[str] = Query(None), admin=Depends(require_admin)):
        data = portal.store.list(status=status, role=role, search=search)
        return {"success": True, "data": data, "count": len(data)}

    @app.get("/api/grievances/{grievance_id}")
    def get_grievance(grievance_id: int, admin=Depends(require_admin)):
        data = portal.store.get_admin_view(grievance_id)
        if data is None:
            raise errors.NotFoundError("Grievance not found")
        return {"success": True, "data": data}

    @app.patch("/api/grievances/{grievance_id}/status")
    def update_status(grievance_id: int, req: StatusUpdate, admin=Depends(require_admin)):
        outcome = portal.lifecycle.set_status(grievance_id, req.status)
        monitoring.logger.info("Status change requested",
                               extra={"grievance_id": grievance_id, "admin": admin.get("username"),
                                      "changed": outcome["changed"]})
        message = "Grievance status updated successfully" if outcome["changed"] else "Status unchanged"
        return {"success": True, "message": message, "status": outcome["status"]}

    @app.get("/api/admin/statistics")
    def statistics(admin=Depends(require_admin)):
        return {"success": True, "data": portal.store.statistics()}

    return app


app = create_app()
