# supabase_client.py: supabase-py clients for Auth and Storage
# Table access goes through supabase_rest; this module only covers the
# hosted sign-up/sign-in flow and the avatars bucket.

import logging
import uuid

from supabase import create_client, Client
from kakeibo import config

logger = logging.getLogger(__name__)

# Lazily created, one per key
_clients: dict[str, Client] = {}


def _cached_client(kind: str, key: str, key_name: str) -> Client:
    if kind not in _clients:
        if not config.SUPABASE_URL or not key:
            raise ValueError(f"SUPABASE_URL and {key_name} must be set to use Supabase {kind} features")
        _clients[kind] = create_client(config.SUPABASE_URL, key)
    return _clients[kind]


def get_supabase_admin() -> Client:
    """Service-role client, used for Storage writes."""
    return _cached_client("admin", config.SUPABASE_SERVICE_ROLE_KEY, "SUPABASE_SERVICE_ROLE_KEY")


def get_supabase_client() -> Client:
    """Anon-key client; Auth calls run as the end user."""
    return _cached_client("auth", config.SUPABASE_ANON_KEY, "SUPABASE_ANON_KEY")


def is_supabase_configured() -> bool:
    """True when PostgREST can be reached with the service-role key."""
    return bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY)


# ── Auth ──────────────────────────────────────────────────────────
def sign_up_user(email: str, password: str, metadata: dict = None):
    credentials = {"email": email, "password": password, "options": {"data": metadata or {}}}
    return get_supabase_client().auth.sign_up(credentials)


def sign_in_user(email: str, password: str):
    """Password sign-in; the returned session carries the bearer token for the API."""
    return get_supabase_client().auth.sign_in_with_password({"email": email, "password": password})


def resend_confirmation(email: str):
    return get_supabase_client().auth.resend({"type": "signup", "email": email})


# ── Storage ───────────────────────────────────────────────────────
def upload_avatar(user_id: str, filename: str, content: bytes, content_type: str) -> str:
    """Upload an avatar image under <user_id>/ and return its public URL."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "png"
    path = f"{user_id}/{user_id}-{uuid.uuid4().hex}.{ext}"

    bucket = get_supabase_admin().storage.from_(config.AVATAR_BUCKET)
    bucket.upload(path, content, {"content-type": content_type})
    public_url = bucket.get_public_url(path)
    logger.info(f"Uploaded avatar for {user_id} to {path}")
    return public_url
