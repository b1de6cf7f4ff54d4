import os, json, base64, pathlib
from functools import lru_cache

from google.cloud.firestore_v1.async_client import AsyncClient
from google.oauth2 import service_account

from doubt_solver.core.config import settings


@lru_cache(maxsize=1)
def get_db() -> AsyncClient:
    """Create the async Firestore client once, on first use."""
    # 1) Prefer base64 secret if present
    key_b64 = os.getenv("FIREBASE_KEY_B64")
    if key_b64:
        creds = service_account.Credentials.from_service_account_info(
            json.loads(base64.b64decode(key_b64))
        )
        project = os.getenv("GOOGLE_CLOUD_PROJECT") or creds.project_id
        return AsyncClient(project=project, credentials=creds)

    # 2) Otherwise use a file path from env or settings
    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or settings.GOOGLE_APPLICATION_CREDENTIALS
    if path and pathlib.Path(path).exists():
        creds = service_account.Credentials.from_service_account_file(path)
        project = os.getenv("GOOGLE_CLOUD_PROJECT") or creds.project_id
        return AsyncClient(project=project, credentials=creds)

    # 3) Fall back to ADC
    return AsyncClient()
