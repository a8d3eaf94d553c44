import logging
import firebase_admin
from firebase_admin import credentials, messaging
from typing import Optional, Dict

from drift.config import settings


logger = logging.getLogger(__name__)

# Global Firebase app instance
firebase_app: Optional[firebase_admin.App] = None


def init_firebase():
    """Initialize Firebase Admin SDK."""
    global firebase_app

    if firebase_app is not None:
        return firebase_app

    # Check if Firebase credentials are configured
    if not settings.FIREBASE_PROJECT_ID or not settings.FIREBASE_CLIENT_EMAIL:
        logger.info("Firebase credentials not configured - push delivery disabled")
        return None

    # Create credentials from environment variables
    cred_dict = {
        "type": "service_account",
        "project_id": settings.FIREBASE_PROJECT_ID,
        "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
        "client_email": settings.FIREBASE_CLIENT_EMAIL,
        "token_uri": "https://oauth2.googleapis.com/token",
    }

    try:
        cred = credentials.Certificate(cred_dict)
        firebase_app = firebase_admin.initialize_app(cred)
        logger.info("Firebase initialized")
        return firebase_app
    except Exception as e:
        logger.error("Firebase initialization failed: %s", e)
        return None


class FirebaseService:
    """
    Push delivery through Firebase Cloud Messaging.
    Blocking calls; run them off the event loop.
    """

    @property
    def is_configured(self) -> bool:
        return firebase_app is not None

    def send_push(
        self,
        fcm_token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Send one notification to a device token.
        Returns the FCM message id.
        """
        if not self.is_configured:
            raise RuntimeError("Firebase is not initialized")

        message = messaging.Message(
            token=fcm_token,
            notification=messaging.Notification(title=title, body=body),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(title=title, body=body),
                        sound="default",
                        badge=1,
                    )
                )
            ),
            # FCM data values must be strings
            data={key: str(value) for key, value in (data or {}).items()},
        )
        return messaging.send(message, app=firebase_app)


# Singleton instance
firebase_service = FirebaseService()
