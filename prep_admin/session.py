"""
Session service: who is signed in, and who wants to know when that changes.

Views and helpers receive the service through ``current_session()`` (it is
stored on ``app.extensions``) instead of reaching for module-level state.
Flask-Login's ``user_logged_in`` / ``user_logged_out`` signals feed it, and
profile edits call ``profile_changed`` so listeners see fresh data.
"""

import logging
from datetime import datetime

from flask import current_app
from flask_login import current_user, user_logged_in, user_logged_out
from sqlalchemy.exc import SQLAlchemyError

from prep_admin.extensions import db

logger = logging.getLogger(__name__)

SIGNED_IN = "signed_in"
SIGNED_OUT = "signed_out"
PROFILE_UPDATED = "profile_updated"


class SessionService:
    def __init__(self):
        self._listeners = []

    def subscribe(self, listener):
        """Register ``listener(event, profile)``; returns a callable that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, event, profile):
        for listener in list(self._listeners):
            try:
                listener(event, profile)
            except Exception:
                # One broken listener must not break sign-in for everybody
                logger.exception("Session listener %r failed on %s", listener, event)

    @property
    def profile(self):
        if current_user and current_user.is_authenticated:
            return current_user._get_current_object()
        return None

    def profile_changed(self, profile):
        self.notify(PROFILE_UPDATED, profile)

    def init_app(self, app):
        app.extensions["session_service"] = self
        user_logged_in.connect(self._on_logged_in, app)
        user_logged_out.connect(self._on_logged_out, app)
        self.subscribe(record_sign_in)

    def _on_logged_in(self, sender, user, **extra):
        self.notify(SIGNED_IN, user)

    def _on_logged_out(self, sender, user, **extra):
        self.notify(SIGNED_OUT, user)


def record_sign_in(event, profile):
    if event != SIGNED_IN or profile is None:
        return
    profile.last_sign_in_at = datetime.utcnow()
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def current_session():
    return current_app.extensions["session_service"]
