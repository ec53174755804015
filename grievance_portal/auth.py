# grievance_portal/auth.py
"""
Administrator authentication and the OTP request rate-limiter.

Admins log in with username/password (bcrypt hashes) and receive a JWT that the
admin endpoints require as a Bearer token. End users never authenticate here;
their only gate is a verified OTP.

The limiter throttles /api/send-otp per email address. With REDIS_URL set the
counter lives in Redis so all workers share it.
"""

import datetime
import re
import threading
import time
from typing import Optional, Tuple, Dict, Any

import bcrypt
import redis
from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError

from grievance_portal import monitoring
from grievance_portal.config import Settings
from grievance_portal.db import Database
from grievance_portal.errors import AuthorizationError, ValidationError, NotFoundError, DependencyError
from grievance_portal.models import AdminUser

SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


class InMemoryFixedWindowLimiter:
    """Thread-safe in-memory fixed-window rate limiter (per-process)."""

    def __init__(self, limit_per_minute: int = 5):
        self.limit = limit_per_minute
        self._store: Dict[str, Tuple[int, int]] = {}  # key -> (window_minute, count)
        self._window: Optional[int] = None
        self._lock = threading.Lock()

    def _prune(self, window: int):
        """Drop counters from earlier windows once the current window rolls over."""
        if self._window == window:
            return
        self._window = window
        for key in [k for k, (wstart, _) in self._store.items() if wstart != window]:
            del self._store[key]

    def allow_request(self, key: str) -> Tuple[bool, Optional[int]]:
        now = int(time.time())
        window = now // 60
        with self._lock:
            self._prune(window)
            if key not in self._store:
                self._store[key] = (window, 1)
                return True, self.limit - 1
            wstart, count = self._store[key]
            if wstart == window:
                if count >= self.limit:
                    return False, 0
                self._store[key] = (wstart, count + 1)
                return True, self.limit - (count + 1)
            else:
                self._store[key] = (window, 1)
                return True, self.limit - 1

    def reset(self):
        """Reset all state (useful for tests)."""
        with self._lock:
            self._store.clear()
            self._window = None


class RedisFixedWindowLimiter:
    """Redis fixed-window counter using INCR + EXPIRE."""

    def __init__(self, redis_url: str, limit_per_minute: int = 5):
        self.limit = limit_per_minute
        self._client = redis.from_url(redis_url, decode_responses=True)

    def allow_request(self, key: str) -> Tuple[bool, Optional[int]]:
        now = int(time.time())
        window = now // 60
        rkey = f"otp-rate:{key}:{window}"
        try:
            count = self._client.incr(rkey)
            if count == 1:
                self._client.expire(rkey, 120)
            if int(count) > self.limit:
                return False, 0
            return True, self.limit - int(count)
        except redis.RedisError as e:
            # Fail open on Redis errors
            monitoring.logger.warning("Rate limiter unavailable, allowing request", extra={"error": str(e)})
            return True, None


def build_limiter(settings: Settings):
    if settings.redis_url:
        return RedisFixedWindowLimiter(settings.redis_url, settings.otp_rate_limit_per_minute)
    return InMemoryFixedWindowLimiter(settings.otp_rate_limit_per_minute)


# ---------------------------------------------------------------------------
# Passwords and tokens
# ---------------------------------------------------------------------------
def hash_password(password: str, rounds: int = 12) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def password_problems(password: str) -> Optional[str]:
    """Return a reason string when the password is too weak, else None."""
    if len(password) < 8:
        return "New password must be at least 8 characters long"
    if not (re.search(r"[A-Z]", password) and re.search(r"[a-z]", password)
            and re.search(r"[0-9]", password) and SPECIAL_CHARS_RE.search(password)):
        return "Password must contain uppercase, lowercase, number, and special character"
    return None


def create_access_token(admin: AdminUser, settings: Settings) -> str:
    expire = datetime.datetime.utcnow() + datetime.timedelta(minutes=settings.jwt_expiry_minutes)
    claims = {
        "sub": str(admin.id),
        "id": admin.id,
        "username": admin.username,
        "role": admin.role,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthorizationError("Invalid or expired token") from e


def _admin_public(admin: AdminUser) -> Dict[str, Any]:
    return {
        "id": admin.id,
        "username": admin.username,
        "email": admin.email,
        "fullName": admin.full_name,
        "role": admin.role,
        "isFirstLogin": admin.is_first_login,
    }


class AdminService:
    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    def create_admin(self, username: str, password: str, email: Optional[str] = None,
                     full_name: Optional[str] = None, role: str = "admin") -> int:
        try:
            with self.db.session() as session:
                admin = AdminUser(
                    username=username,
                    password_hash=hash_password(password, self.settings.bcrypt_rounds),
                    email=email,
                    full_name=full_name,
                    role=role,
                    is_first_login=True,
                )
                session.add(admin)
                session.commit()
                return admin.id
        except SQLAlchemyError as e:
            monitoring.logger.error("Admin create failed", extra={"error": str(e)})
            raise DependencyError("Server error") from e

    def bootstrap(self) -> Optional[int]:
        """Create the first admin from ADMIN_BOOTSTRAP_* when the table is empty."""
        s = self.settings
        if not (s.admin_bootstrap_username and s.admin_bootstrap_password):
            return None
        with self.db.session() as session:
            if session.query(AdminUser.id).first() is not None:
                return None
        admin_id = self.create_admin(s.admin_bootstrap_username, s.admin_bootstrap_password,
                                     email=s.admin_bootstrap_email)
        monitoring.logger.info("Bootstrap admin created", extra={"username": s.admin_bootstrap_username})
        return admin_id

    def login(self, username: str, password: str) -> Dict[str, Any]:
        if not username or not password:
            raise ValidationError("Username and password are required", fields=["username", "password"])
        try:
            with self.db.session() as session:
                admin = session.query(AdminUser).filter(AdminUser.username == username).first()
                if admin is None or not verify_password(password, admin.password_hash):
                    raise AuthorizationError("Invalid username or password")
                admin.last_login = datetime.datetime.utcnow()
                session.commit()
                token = create_access_token(admin, self.settings)
                return {"token": token, "admin": _admin_public(admin)}
        except SQLAlchemyError as e:
            monitoring.logger.error("Admin login store error", extra={"error": str(e)})
            raise DependencyError("Server error") from e

    def change_password(self, admin_id: int, current_password: str, new_password: str):
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required",
                                  fields=["currentPassword", "newPassword"])
        problem = password_problems(new_password)
        if problem:
            raise ValidationError(problem, fields=["newPassword"])
        try:
            with self.db.session() as session:
                admin = session.get(AdminUser, admin_id)
                if admin is None:
                    raise NotFoundError("Admin user not found")
                if not verify_password(current_password, admin.password_hash):
                    raise AuthorizationError("Current password is incorrect")
                admin.password_hash = hash_password(new_password, self.settings.bcrypt_rounds)
                admin.is_first_login = False
                session.commit()
        except SQLAlchemyError as e:
            monitoring.logger.error("Change password store error", extra={"error": str(e)})
            raise DependencyError("Server error") from e

    def profile(self, admin_id: int) -> Dict[str, Any]:
        try:
            with self.db.session() as session:
                admin = session.get(AdminUser, admin_id)
        except SQLAlchemyError as e:
            raise DependencyError("Server error") from e
        if admin is None:
            raise NotFoundError("Admin user not found")
        data = _admin_public(admin)
        data["lastLogin"] = admin.last_login.isoformat() if admin.last_login else None
        data["createdAt"] = admin.created_at.isoformat() if admin.created_at else None
        return data
