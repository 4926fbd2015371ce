"""
Authentication and identity related use cases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
import logging
import secrets
import time

from accounts.core.config import Settings, get_settings
from accounts.core.login_throttle import LoginThrottle
from accounts.core.security import (
    codes_match,
    generate_reset_code,
    hash_password,
    needs_rehash,
    verify_password,
)
from accounts.domain.models import PasswordResetTicket, User
from accounts.domain.results import (
    AuditLogResult,
    ErrorCode,
    ExportResult,
    ImportResult,
    ResetInitiation,
    Result,
    UserLookup,
    UsersResult,
)
from accounts.domain.validation import (
    is_valid_role,
    is_valid_status,
    json_problem,
    password_problem,
    username_problem,
)
from accounts.services.persistence import ImportSource, PersistenceAdapter

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
LOCKED_OUT_MESSAGE = "Too many failed attempts. Try again later."
RESET_ISSUED_MESSAGE = "If the account exists, a reset code has been generated."
INVALID_CODE_MESSAGE = "Invalid or expired reset code"
UPDATABLE_FIELDS = frozenset({"password", "role", "status", "profile"})


@dataclass
class IdentityService:
    """Registration, login, session, role checks and password reset.

    The session is a plain field of this instance: one logged-in identity per
    service, driven by a single caller. Role gating of the administrative
    calls is left to the application shell.
    """

    adapter: PersistenceAdapter
    settings: Optional[Settings] = None
    _user: Optional[User] = field(default=None, init=False, repr=False)
    _tickets: dict[str, PasswordResetTicket] = field(default_factory=dict, init=False, repr=False)
    _dummy_hash: Optional[str] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if self.settings is None:
            self.settings = get_settings()
        self.throttle = LoginThrottle(
            self.settings.max_login_attempts,
            self.settings.lockout_seconds,
            clock=lambda: self._now(),
        )

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> float:
        return time.time()

    def _set_session(self, user: Optional[User]) -> None:
        self._user = user
        self.adapter.set_current_user(user)

    def _burn_verification(self, password: str) -> None:
        # Unknown usernames still pay for one argon2 verification.
        if self._dummy_hash is None:
            self._dummy_hash = hash_password(secrets.token_urlsafe(16))
        verify_password(password, self._dummy_hash)

    def _audit(self, action: str, username: str, details: Optional[Mapping[str, Any]] = None) -> None:
        self.adapter.add_audit_log_entry(action, username, details)

    def _admin_count(self) -> Optional[int]:
        loaded = self.adapter.load_users()
        if not loaded:
            return None
        return sum(1 for u in loaded.users if u.is_admin)

    def _purge_expired_tickets(self) -> None:
        now = self._now()
        ttl = self.settings.password_reset_ttl
        for username in [name for name, t in self._tickets.items() if t.expired(now, ttl)]:
            del self._tickets[username]

    # -------------------------------------- registration --------------------------------------
    def register_user(self, username: str, password: str, role: str = "user") -> Result:
        problem = username_problem(username)
        if problem:
            return Result.fail(ErrorCode.INVALID_INPUT, problem)
        if not is_valid_role(role):
            return Result.fail(ErrorCode.INVALID_INPUT, f"Invalid role: {role}")
        problem = password_problem(password)
        if problem:
            return Result.fail(ErrorCode.INVALID_INPUT, problem)

        existing = self.adapter.find_user(username)
        if not existing:
            return existing
        if existing.user is not None:
            return Result.fail(ErrorCode.USERNAME_TAKEN, "Username already exists")

        added = self.adapter.add_user(User(username=username, password_hash=hash_password(password), role=role))
        if not added:
            if added.error is ErrorCode.DUPLICATE_USERNAME:
                return Result.fail(ErrorCode.USERNAME_TAKEN, "Username already exists")
            return added
        self._audit("register", username, {"role": role})
        logger.info("Registered user %s (%s)", username, role)
        return Result.ok()

    # -------------------------------------- login --------------------------------------
    def verify_user(self, username: str, password: str) -> Result:
        if self.throttle.is_locked(username):
            return Result.fail(ErrorCode.LOCKED_OUT, LOCKED_OUT_MESSAGE)
        lookup = self.adapter.find_user(username)
        if not lookup:
            return lookup
        user = lookup.user
        if user is None:
            self._burn_verification(password)
            self.throttle.record_failure(username)
            return Result.fail(ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        if not verify_password(password, user.password_hash) or user.status != "active":
            remaining = self.throttle.record_failure(username)
            self._audit("login_failed", username, {"attempts_remaining": remaining})
            if remaining == 0:
                self._audit("account_lockout", username, {"reason": "Too many failed login attempts"})
                logger.warning("Username %s locked after repeated failures", username)
            return Result.fail(ErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        self.throttle.reset(username)
        if needs_rehash(user.password_hash):
            refreshed = self.adapter.update_user(username, {"password_hash": hash_password(password)})
            if refreshed and refreshed.user is not None:
                user = refreshed.user
        self._set_session(user)
        self._audit("login", username, {"success": True})
        return Result.ok()

    def logout_user(self) -> Result:
        if self._user is not None:
            self._audit("logout", self._user.username)
        self._set_session(None)
        return Result.ok()

    # -------------------------------------- session queries --------------------------------------
    def is_user_logged_in(self) -> bool:
        return self._user is not None

    def get_current_username(self) -> Optional[str]:
        return self._user.username if self._user else None

    def get_current_user_role(self) -> Optional[str]:
        return self._user.role if self._user else None

    def is_current_user_admin(self) -> bool:
        return bool(self._user and self._user.is_admin)

    # -------------------------------------- administration --------------------------------------
    def get_all_users(self) -> UsersResult:
        return self.adapter.load_users()

    def update_user(self, username: str, updated_data: Mapping[str, Any]) -> UserLookup:
        if not updated_data:
            return UserLookup.fail(ErrorCode.INVALID_INPUT, "No fields to update")
        unknown = set(updated_data) - UPDATABLE_FIELDS
        if unknown:
            return UserLookup.fail(ErrorCode.INVALID_INPUT, f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        changes: dict[str, Any] = {}
        if "password" in updated_data:
            problem = password_problem(updated_data["password"])
            if problem:
                return UserLookup.fail(ErrorCode.INVALID_INPUT, problem)
            changes["password_hash"] = hash_password(updated_data["password"])
        if "role" in updated_data:
            if not is_valid_role(updated_data["role"]):
                return UserLookup.fail(ErrorCode.INVALID_INPUT, f"Invalid role: {updated_data['role']}")
            changes["role"] = updated_data["role"]
        if "status" in updated_data:
            if not is_valid_status(updated_data["status"]):
                return UserLookup.fail(ErrorCode.INVALID_INPUT, f"Invalid status: {updated_data['status']}")
            changes["status"] = updated_data["status"]
        if "profile" in updated_data:
            if not isinstance(updated_data["profile"], Mapping):
                return UserLookup.fail(ErrorCode.INVALID_INPUT, "Profile must be a mapping")
            problem = json_problem(updated_data["profile"])
            if problem:
                return UserLookup.fail(ErrorCode.INVALID_INPUT, problem)
            changes["profile"] = dict(updated_data["profile"])

        existing = self.adapter.find_user(username)
        if not existing:
            return existing
        if existing.user is None:
            return UserLookup.fail(ErrorCode.NOT_FOUND, "User not found")
        if existing.user.is_admin and changes.get("role", "admin") != "admin":
            admins = self._admin_count()
            if admins is None:
                return UserLookup.fail(ErrorCode.BACKEND_UNAVAILABLE, "Storage backend unavailable")
            if admins <= 1:
                return UserLookup.fail(ErrorCode.LAST_ADMIN, "Cannot demote the last administrator account")

        result = self.adapter.update_user(username, changes)
        if not result:
            return result
        if self._user is not None and self._user.username == username:
            self._user = result.user
        self._audit("update", username, {"fields": sorted(updated_data)})
        return result

    def delete_user(self, username: str) -> Result:
        existing = self.adapter.find_user(username)
        if not existing:
            return existing
        if existing.user is None:
            return Result.fail(ErrorCode.NOT_FOUND, "User not found")
        if existing.user.is_admin:
            admins = self._admin_count()
            if admins is None:
                return Result.fail(ErrorCode.BACKEND_UNAVAILABLE, "Storage backend unavailable")
            if admins <= 1:
                return Result.fail(ErrorCode.LAST_ADMIN, "Cannot delete the last administrator account")

        result = self.adapter.delete_user(username)
        if not result:
            return result
        self._audit("delete", username, {"deleted_by": self.get_current_username()})
        if self._user is not None and self._user.username == username:
            self._set_session(None)
        return Result.ok()

    # -------------------------------------- password reset --------------------------------------
    def initiate_password_reset(self, username: str) -> ResetInitiation:
        self._purge_expired_tickets()
        lookup = self.adapter.find_user(username)
        if not lookup:
            return ResetInitiation.fail(lookup.error, lookup.message)
        if lookup.user is None:
            return ResetInitiation.ok(RESET_ISSUED_MESSAGE)
        code = generate_reset_code()
        self._tickets[username] = PasswordResetTicket(username=username, code=code, issued_at=self._now())
        self._audit("password_reset_initiated", username)
        return ResetInitiation.ok(RESET_ISSUED_MESSAGE, code=code)

    def complete_password_reset(self, username: str, code: str, new_password: str) -> Result:
        self._purge_expired_tickets()
        ticket = self._tickets.get(username)
        if ticket is None or not codes_match(ticket.code, code):
            return Result.fail(ErrorCode.INVALID_OR_EXPIRED_CODE, INVALID_CODE_MESSAGE)
        problem = password_problem(new_password)
        if problem:
            return Result.fail(ErrorCode.INVALID_INPUT, problem)

        updated = self.adapter.update_user(username, {"password_hash": hash_password(new_password)})
        if not updated:
            if updated.error is ErrorCode.NOT_FOUND:
                self._tickets.pop(username, None)
                return Result.fail(ErrorCode.INVALID_OR_EXPIRED_CODE, INVALID_CODE_MESSAGE)
            return updated
        self._tickets.pop(username, None)
        self.throttle.reset(username)
        if self._user is not None and self._user.username == username:
            self._user = updated.user
        self._audit("password_reset_completed", username)
        return Result.ok("Password has been reset successfully")

    # -------------------------------------- audit / data --------------------------------------
    def get_audit_logs(self) -> AuditLogResult:
        return self.adapter.get_audit_log()

    def export_user_data(self, path=None, include_password_hashes: bool = False) -> ExportResult:
        return self.adapter.export_user_data(path, include_password_hashes=include_password_hashes)

    def import_user_data(self, data: ImportSource, mode: str = "merge") -> ImportResult:
        return self.adapter.import_user_data(data, mode)
