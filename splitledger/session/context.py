"""
Application Context: Session and Theme

DESIGN DECISION: Authentication is mocked. There is one demo account and a
local key-value store that remembers who is logged in between runs.

Session and theme state live on explicit objects with load()/save()
lifecycle hooks, grouped in an AppContext that the UI creates once and
passes around. Nothing here is module-level mutable state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog
from pydantic import ValidationError

from splitledger.audit.logger import AuditLogger
from splitledger.config import AppSettings, get_settings
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.transaction import UserProfile, utc_now
from splitledger.services.storage.interface import KeyValueStoreInterface
from splitledger.services.storage.local import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)


logger = structlog.get_logger(__name__)

CURRENT_USER_KEY = "currentUser"
USER_DATA_KEY = "userData"
THEME_KEY = "theme"


class AuthenticationError(Exception):
    """Mock login rejected the credentials."""
    pass


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class SessionManager:
    """
    Mocked authentication backed by a key-value store.

    load() restores a saved session or, when there is none, logs the demo
    user in automatically and saves that session.
    """

    def __init__(
        self,
        store: KeyValueStoreInterface,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().app
        self._audit = audit_logger
        self.current_user: Optional[UserProfile] = None

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def demo_user(self) -> UserProfile:
        return UserProfile(
            uid=self._settings.demo_user_id,
            email=self._settings.demo_user_email,
            display_name=self._settings.demo_user_name,
        )

    # -- lifecycle -----------------------------------------------------------

    def _restore(self) -> Optional[UserProfile]:
        user = self._store.get(CURRENT_USER_KEY)
        user_data = self._store.get(USER_DATA_KEY)
        if not user or not user_data:
            return None
        try:
            return UserProfile.model_validate(user_data)
        except ValidationError as e:
            logger.warning("stored_session_invalid", error=str(e))
            return None

    def load(self) -> UserProfile:
        """Restore the saved session, or auto-login the demo user."""
        restored = self._restore()
        if restored is not None:
            logger.info("session_restored", uid=restored.uid)
            self.current_user = restored
        else:
            self.current_user = self.demo_user()
            self.save()
        return self.current_user

    def save(self) -> None:
        if self.current_user is None:
            self._store.remove(CURRENT_USER_KEY)
            self._store.remove(USER_DATA_KEY)
            return
        user = self.current_user
        self._store.set(CURRENT_USER_KEY, {
            "uid": user.uid,
            "email": user.email,
            "displayName": user.display_name,
            "photoURL": user.photo_url,
        })
        self._store.set(USER_DATA_KEY, user.model_dump(mode="json"))

    # -- auth flows ----------------------------------------------------------

    async def _logged_in(self, user: UserProfile, method: str) -> UserProfile:
        self.current_user = user
        self.save()
        if self._audit:
            await self._audit.log(AuditEventBuilder.user_logged_in(user.uid, method))
        return user

    async def login(self, email: str, password: str) -> UserProfile:
        """
        Log in with email and password.

        Only the demo account's email is accepted; the password is not checked.

        Raises:
            AuthenticationError: For any other email
        """
        if email.strip().lower() != self._settings.demo_user_email.lower():
            logger.info("login_rejected", email=email)
            raise AuthenticationError("Mock login failed: Invalid credentials")
        return await self._logged_in(self.demo_user(), "password")

    async def login_with_google(self) -> UserProfile:
        return await self._logged_in(self.demo_user(), "google")

    async def signup(self, email: str, password: str, display_name: str) -> UserProfile:
        """Create a new mock account and log it in."""
        now = utc_now()
        user = UserProfile(
            uid=f"mock-{int(now.timestamp() * 1000)}",
            email=email.strip(),
            display_name=display_name.strip(),
            created_at=now,
        )
        return await self._logged_in(user, "signup")

    async def logout(self) -> None:
        user = self.current_user
        self.current_user = None
        self.save()
        if user is not None and self._audit:
            await self._audit.log(AuditEventBuilder.user_logged_out(user.uid))


class ThemePreference:
    """Light, dark or follow-the-system, persisted in the key-value store."""

    def __init__(
        self,
        store: KeyValueStoreInterface,
        default: Theme = Theme.SYSTEM,
    ):
        self._store = store
        self._default = Theme(default)
        self.theme: Theme = self._default

    def load(self) -> Theme:
        stored = self._store.get(THEME_KEY)
        try:
            self.theme = Theme(stored) if stored else self._default
        except ValueError:
            logger.warning("stored_theme_invalid", value=stored)
            self.theme = self._default
        return self.theme

    def save(self) -> None:
        self._store.set(THEME_KEY, self.theme.value)

    def set(self, theme: Theme | str) -> Theme:
        self.theme = Theme(theme)
        self.save()
        return self.theme

    def resolve(self, system_prefers_dark: bool = False) -> Theme:
        """The concrete theme to render: system resolves to light or dark."""
        if self.theme == Theme.SYSTEM:
            return Theme.DARK if system_prefers_dark else Theme.LIGHT
        return self.theme


@dataclass
class AppContext:
    """Everything the UI needs about who is using the app and how."""

    settings: AppSettings
    store: KeyValueStoreInterface
    session: SessionManager
    theme: ThemePreference

    @classmethod
    def create(
        cls,
        settings: Optional[AppSettings] = None,
        store: Optional[KeyValueStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        persistent: bool = True,
    ) -> "AppContext":
        settings = settings or get_settings().app
        if store is None:
            store = (
                JsonFileKeyValueStore(settings.session_store_path)
                if persistent
                else InMemoryKeyValueStore()
            )
        return cls(
            settings=settings,
            store=store,
            session=SessionManager(store, settings, audit_logger),
            theme=ThemePreference(store, Theme(settings.default_theme)),
        )

    def load(self) -> "AppContext":
        """Run every load hook. Returns self for chaining."""
        self.session.load()
        self.theme.load()
        return self
