from typing import Optional, Dict, Any
import logging

import firebase_admin
from firebase_admin import credentials, auth as fb_auth, exceptions as fb_exceptions

from ...application.ports.identity_provider import IdentityProvider, IdentityError

logger = logging.getLogger(__name__)

APP_NAME = "hotel-auth"


class FirebaseIdentityProvider(IdentityProvider):
    """Firebase Admin adapter bound to its own named app instance."""

    def __init__(self, project_id: str, client_email: str, private_key: str):
        self.project_id = project_id
        self.client_email = client_email
        self.private_key = private_key
        self._app: Optional[firebase_admin.App] = None

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app
        if not self.client_email or not self.private_key or not self.project_id:
            raise IdentityError("Firebase credentials are not configured")
        try:
            self._app = firebase_admin.get_app(APP_NAME)
        except ValueError:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": self.project_id,
                "private_key": self.private_key,
                "client_email": self.client_email,
                "token_uri": "https://oauth2.googleapis.com/token",
            })
            self._app = firebase_admin.initialize_app(cred, {"projectId": self.project_id}, name=APP_NAME)
            logger.info("Firebase app initialized")
        return self._app

    def verify_id_token(self, id_token: str) -> Optional[Dict[str, Any]]:
        """Verify a Firebase ID token and return decoded claims or None."""
        try:
            return fb_auth.verify_id_token(id_token, app=self._get_app())
        except IdentityError as e:
            logger.error(f"Firebase unavailable: {e}")
            return None
        except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError,
                fb_auth.RevokedIdTokenError, fb_auth.CertificateFetchError) as e:
            logger.warning(f"Firebase token verification failed: {e}")
            return None

    def update_password(self, uid: str, new_password: str) -> None:
        try:
            fb_auth.update_user(uid, password=new_password, app=self._get_app())
        except (ValueError, fb_exceptions.FirebaseError) as e:
            raise IdentityError(str(e)) from e
        logger.info(f"Firebase password updated for uid {uid}")
