from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from devsource_platform.db import insert_returning
from devsource_platform.errors import ValidationError
from devsource_platform.util.time import parse_iso, to_iso, utcnow_iso


PROJECT_TYPES = (1, 2, 3)


def public_project(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    try:
        images = json.loads(d.get("images_json") or "[]")
    except json.JSONDecodeError:
        images = []
    return {
        "id": int(d["project_id"]),
        "title": d.get("title") or "",
        "description": d.get("description") or "",
        "type": int(d["type"]),
        "images": images if isinstance(images, list) else [],
        "createdAt": d.get("created_at"),
        "endDate": d.get("end_date"),
    }


def _date_field(name: str, value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    dt = parse_iso(value) if isinstance(value, str) else None
    if dt is None:
        raise ValidationError(f"Invalid {name}. Use an ISO-8601 date.", error=f"invalid_{name}")
    return to_iso(dt)


def create_project(
    conn: Any,
    *,
    title: str | None,
    description: str | None,
    type: Any,
    images: Optional[List[Any]] = None,
    created_at: Any = None,
    end_date: Any = None,
) -> Dict[str, Any]:
    t = (title or "").strip()
    desc = (description or "").strip()
    if not t or not desc or type is None or type == 0 or type == "":
        raise ValidationError("Title, description, and type are required.")

    # Only the numbers 1-3; "1" or True do not count, 2.0 does.
    if isinstance(type, float) and type.is_integer():
        type = int(type)
    if isinstance(type, bool) or not isinstance(type, int) or type not in PROJECT_TYPES:
        raise ValidationError("Invalid project type. Must be 1, 2, or 3.")

    imgs = [str(i).strip() for i in (images or []) if str(i).strip()]

    row = insert_returning(
        conn,
        """
        INSERT INTO projects (title, description, type, images_json, created_at, end_date)
        VALUES (?,?,?,?,?,?)
        RETURNING *
        """,
        (
            t,
            desc,
            int(type),
            json.dumps(imgs),
            _date_field("createdAt", created_at) or utcnow_iso(),
            _date_field("endDate", end_date),
        ),
    )
    return public_project(row)


def list_projects(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM projects ORDER BY created_at DESC, project_id DESC").fetchall()
    return [public_project(r) for r in rows]
