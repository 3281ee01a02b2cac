from __future__ import annotations

from typing import Any, Dict, List, Optional

from passlib.context import CryptContext

from devsource_platform.config import Config
from devsource_platform.db import connect, insert_returning, is_unique_violation
from devsource_platform.errors import Conflict, NotFound, ValidationError
from devsource_platform.util.time import utcnow_iso

from .security import ROLES, hash_password, verify_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Wire representation of a user row. Never includes the password hash."""
    d = dict(row)
    return {
        "id": int(d["user_id"]),
        "name": d.get("name") or "",
        "email": d.get("email") or "",
        "role": d.get("role") or "user",
        "profilePicture": d.get("profile_picture") or "",
        "description": d.get("description") or "",
        "address": d.get("address") or "",
        "createdAt": d.get("created_at"),
        "lastLoginAt": d.get("last_login_at"),
    }


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM users ORDER BY user_id").fetchall()
    return [public_user(r) for r in rows]


def verify_user_credentials(
    conn: Any, pwd: CryptContext, email: str, password: str, role: str
) -> Optional[Any]:
    """Return the user row when email, role and password all match."""
    row = get_user_by_email(conn, email)
    if row is None or row["role"] != role:
        return None
    if not verify_password(pwd, password, str(row["password_hash"])):
        return None
    return row


def create_user(
    conn: Any,
    pwd: CryptContext,
    *,
    name: str,
    email: str,
    password: str,
    role: str = "user",
    profile_picture: str | None = None,
) -> Dict[str, Any]:
    """Register an account. Email is unique across all roles."""
    n = (name or "").strip()
    e = normalize_email(email)
    if not n or not e or not password:
        raise ValidationError("Name, email, and password are required.")
    if role not in ROLES:
        raise ValidationError("Invalid role.", error="invalid_role")

    exists_message = "Admin already exists" if role == "admin" else "User already exists"
    if get_user_by_email(conn, e) is not None:
        raise Conflict(exists_message)

    now = utcnow_iso()
    try:
        row = insert_returning(
            conn,
            """
            INSERT INTO users (name, email, password_hash, role, profile_picture, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?)
            RETURNING *
            """,
            (n, e, hash_password(pwd, password), role, (profile_picture or "").strip(), now, now),
        )
    except Exception as exc:
        # A concurrent registration won the race past the lookup above.
        if is_unique_violation(exc):
            raise Conflict(exists_message) from exc
        raise
    return public_user(row)


def update_profile(
    conn: Any,
    user_id: int,
    *,
    description: str | None = None,
    address: str | None = None,
    profile_picture: str | None = None,
) -> Dict[str, Any]:
    """Partially update profile fields. Password and role are never touched."""
    fields: list[tuple[str, Any]] = []
    if description is not None:
        fields.append(("description", description))
    if address is not None:
        fields.append(("address", address))
    if profile_picture is not None:
        fields.append(("profile_picture", profile_picture))

    if fields:
        fields.append(("updated_at", utcnow_iso()))
        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [int(user_id)]
        conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)

    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFound("User not found")
    return public_user(row)


def delete_user(conn: Any, user_id: int) -> None:
    """Remove a user. Their blogs keep a dangling created_by reference."""
    if get_user_by_id(conn, user_id) is None:
        raise NotFound("User not found")
    conn.execute("DELETE FROM users WHERE user_id=?", (int(user_id),))


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, int(user_id)),
    )


def bootstrap_admin_if_needed(cfg: Config, pwd: CryptContext) -> Optional[Dict[str, Any]]:
    """Create the first admin account if no admin exists yet.

    Controlled via environment variables:

    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD
    - AUTH_BOOTSTRAP_ADMIN_NAME (default: Administrator)

    Nothing is created unless both email and password are set.
    """
    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL or "")
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD or ""
    if not email or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users WHERE role='admin'").fetchone()["n"]
        if int(n) > 0:
            return None
        if get_user_by_email(conn, email) is not None:
            _debug(f"Bootstrap admin email {email} is already registered as a user; skipping")
            return None
        return create_user(
            conn,
            pwd,
            name=cfg.AUTH_BOOTSTRAP_ADMIN_NAME or "Administrator",
            email=email,
            password=password,
            role="admin",
        )
