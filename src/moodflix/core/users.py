from __future__ import annotations

import logging
import re
from typing import Any

import bcrypt
import httpx

from moodflix.core.config import google_client_id
from moodflix.core.models import User, from_document, to_document, utc_now_iso
from moodflix.core.store import DocumentStore, DuplicateError

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 50

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


class AuthError(RuntimeError):
    pass


class UserExistsError(AuthError):
    pass


class InvalidCredentials(AuthError):
    pass


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalise_email(email: str) -> str:
    return email.strip().lower()


def validate_signup(first_name: str, last_name: str, email: str, password: str) -> None:
    if not first_name.strip() or not last_name.strip() or not email.strip() or not password:
        raise ValueError("All fields are required")
    if len(first_name.strip()) > MAX_NAME_LENGTH or len(last_name.strip()) > MAX_NAME_LENGTH:
        raise ValueError(f"Names cannot exceed {MAX_NAME_LENGTH} characters")
    if not _EMAIL_RE.match(normalise_email(email)):
        raise ValueError("Please enter a valid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def register_user(
    store: DocumentStore, *, first_name: str, last_name: str, email: str, password: str
) -> User:
    validate_signup(first_name, last_name, email, password)

    email = normalise_email(email)
    if store.find_one("users", email=email) is not None:
        raise UserExistsError("User already exists")

    user = User(
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        password_hash=hash_password(password),
    )
    try:
        doc = store.insert("users", to_document(user))
    except DuplicateError as e:
        raise UserExistsError("User already exists") from e

    logger.info("Registered user %s", doc["id"])
    return from_document(User, doc)


def get_user(store: DocumentStore, user_id: str) -> User | None:
    doc = store.get("users", user_id)
    return from_document(User, doc) if doc else None


def authenticate(store: DocumentStore, *, email: str, password: str) -> User:
    doc = store.find_one("users", email=normalise_email(email))
    if doc is None:
        raise InvalidCredentials("No user found with this email")

    user = from_document(User, doc)
    if not user.password_hash or not check_password(password, user.password_hash):
        raise InvalidCredentials("Invalid password")

    store.update("users", doc["id"], {"last_active": utc_now_iso()})
    return user


def verify_google_id_token(
    id_token: str, *, client: httpx.Client | None = None, timeout_s: float = 10.0
) -> dict[str, Any]:
    """Validate a Google ID token with the tokeninfo endpoint and return its claims."""

    expected_aud = google_client_id()
    if not expected_aud:
        raise AuthError("Google sign-in is not configured")

    close_client = False
    if client is None:
        client = httpx.Client(timeout=timeout_s)
        close_client = True

    try:
        resp = client.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
    except httpx.HTTPError as e:
        raise AuthError("Could not reach Google to verify the token") from e
    finally:
        if close_client:
            client.close()

    if resp.status_code >= 400:
        raise InvalidCredentials("Invalid Google token")

    try:
        claims = resp.json()
    except ValueError as e:
        raise AuthError("Google returned a non-JSON body") from e
    if not isinstance(claims, dict) or claims.get("aud") != expected_aud:
        raise InvalidCredentials("Google token was issued for another client")
    if not claims.get("sub") or not claims.get("email"):
        raise InvalidCredentials("Google token is missing the account id or email")
    # tokeninfo reports the flag as the string "true"; accounts are linked by email.
    if claims.get("email_verified") not in (True, "true"):
        raise InvalidCredentials("Google account email is not verified")
    return claims


def upsert_google_user(store: DocumentStore, claims: dict[str, Any]) -> User:
    google_id = str(claims["sub"])
    email = normalise_email(str(claims["email"]))

    doc = store.find_one("users", google_id=google_id) or store.find_one("users", email=email)
    if doc is not None:
        updated = store.update(
            "users",
            doc["id"],
            {
                "google_id": google_id,
                "avatar": doc.get("avatar") or claims.get("picture"),
                "last_active": utc_now_iso(),
            },
        )
        return from_document(User, updated or doc)

    user = User(
        email=email,
        first_name=str(claims.get("given_name") or email.split("@", 1)[0]),
        last_name=str(claims.get("family_name") or ""),
        google_id=google_id,
        avatar=claims.get("picture"),
    )
    doc = store.insert("users", to_document(user))
    logger.info("Registered Google user %s", doc["id"])
    return from_document(User, doc)
