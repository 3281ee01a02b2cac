from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from devsource_platform.auth.crud import get_user_by_id
from devsource_platform.db import insert_returning
from devsource_platform.errors import Forbidden, NotFound, ValidationError
from devsource_platform.util.time import utcnow_iso


VOTES = ("like", "dislike")

_BLOG_SELECT = """
SELECT b.*, u.name AS creator_name, u.profile_picture AS creator_profile
FROM blogs b
LEFT JOIN users u ON u.user_id = b.created_by
"""


def _escape_like(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _votes_by_blog(conn: Any, blog_ids: Sequence[int]) -> Dict[int, Dict[str, List[int]]]:
    out: Dict[int, Dict[str, List[int]]] = {int(b): {"like": [], "dislike": []} for b in blog_ids}
    if not out:
        return out
    marks = ",".join(["?"] * len(out))
    rows = conn.execute(
        f"""
        SELECT blog_id, user_id, vote
        FROM blog_votes
        WHERE blog_id IN ({marks})
        ORDER BY created_at, user_id
        """,
        tuple(out.keys()),
    ).fetchall()
    for r in rows:
        out[int(r["blog_id"])][str(r["vote"])].append(int(r["user_id"]))
    return out


def public_blog(
    row: Any | Dict[str, Any],
    votes: Optional[Dict[str, List[int]]] = None,
    *,
    with_creator: bool = False,
) -> Dict[str, Any]:
    d = dict(row)
    likes = list((votes or {}).get("like") or [])
    dislikes = list((votes or {}).get("dislike") or [])
    out: Dict[str, Any] = {
        "id": int(d["blog_id"]),
        "title": d.get("title") or "",
        "description": d.get("description") or "",
        "image": d.get("image") or "",
        "createdBy": int(d["created_by"]),
        "createdAt": d.get("created_at"),
        "likes": likes,
        "dislikes": dislikes,
        "likesCount": len(likes),
        "dislikesCount": len(dislikes),
    }
    if with_creator:
        # The creator may have been deleted; blogs are not cascaded.
        out["createdByName"] = d.get("creator_name") or "Unknown"
        out["createdByProfile"] = d.get("creator_profile") or ""
    return out


def _enrich(conn: Any, rows: List[Any], *, with_creator: bool) -> List[Dict[str, Any]]:
    votes = _votes_by_blog(conn, [int(r["blog_id"]) for r in rows])
    return [public_blog(r, votes.get(int(r["blog_id"])), with_creator=with_creator) for r in rows]


def get_blog(conn: Any, blog_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM blogs WHERE blog_id=?",
        (int(blog_id),),
    ).fetchone()


def create_blog(
    conn: Any,
    *,
    user_id: int,
    title: str | None,
    description: str | None,
    image: str | None = None,
) -> Dict[str, Any]:
    t = (title or "").strip()
    desc = (description or "").strip()
    if not t or not desc:
        raise ValidationError("Title and description are required.")

    if get_user_by_id(conn, user_id) is None:
        raise NotFound("User not found")

    row = insert_returning(
        conn,
        """
        INSERT INTO blogs (title, description, image, created_by, created_at)
        VALUES (?,?,?,?,?)
        RETURNING *
        """,
        (t, desc, (image or "").strip(), int(user_id), utcnow_iso()),
    )
    return public_blog(row)


def list_blogs(conn: Any) -> List[Dict[str, Any]]:
    """All blogs, newest first, with vote counts and creator name/avatar."""
    rows = conn.execute(_BLOG_SELECT + " ORDER BY b.created_at DESC, b.blog_id DESC").fetchall()
    return _enrich(conn, rows, with_creator=True)


def search_blogs(conn: Any, q: str | None) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over title and description.

    The query is matched literally; only a missing or empty `q` is rejected.
    """
    if not q:
        raise ValidationError("Search query is required")

    if getattr(conn, "dialect", "sqlite") == "postgres":
        where = r"b.title ILIKE ? ESCAPE '\' OR b.description ILIKE ? ESCAPE '\'"
        like = f"%{_escape_like(q)}%"
    else:
        where = r"py_casefold(b.title) LIKE ? ESCAPE '\' OR py_casefold(b.description) LIKE ? ESCAPE '\'"
        like = f"%{_escape_like(q.casefold())}%"

    rows = conn.execute(
        _BLOG_SELECT + f" WHERE {where} ORDER BY b.created_at DESC, b.blog_id DESC",
        (like, like),
    ).fetchall()
    return _enrich(conn, rows, with_creator=True)


def list_user_blogs(conn: Any, user_id: int) -> List[Dict[str, Any]]:
    if get_user_by_id(conn, user_id) is None:
        raise NotFound("User not found")
    rows = conn.execute(
        "SELECT * FROM blogs WHERE created_by=? ORDER BY created_at DESC, blog_id DESC",
        (int(user_id),),
    ).fetchall()
    return _enrich(conn, rows, with_creator=False)


def toggle_vote(conn: Any, *, blog_id: int, user_id: int, vote: str) -> Tuple[int, int]:
    """Toggle a like or dislike for one user on one blog.

    Casting the same vote twice removes it; casting the opposite vote replaces it,
    so a user is never in both likes and dislikes. Returns (likes, dislikes).

    This is a read-modify-write without a version check: two concurrent toggles
    by the same user on the same blog resolve last-write-wins.
    """
    if vote not in VOTES:
        raise ValueError("invalid_vote")
    if get_blog(conn, blog_id) is None:
        raise NotFound("Blog not found")

    current = conn.execute(
        "SELECT vote FROM blog_votes WHERE blog_id=? AND user_id=?",
        (int(blog_id), int(user_id)),
    ).fetchone()

    if current is not None and current["vote"] == vote:
        conn.execute(
            "DELETE FROM blog_votes WHERE blog_id=? AND user_id=?",
            (int(blog_id), int(user_id)),
        )
    else:
        conn.execute(
            """
            INSERT INTO blog_votes (blog_id, user_id, vote, created_at) VALUES (?,?,?,?)
            ON CONFLICT (blog_id, user_id) DO UPDATE SET vote=excluded.vote, created_at=excluded.created_at
            """,
            (int(blog_id), int(user_id), vote, utcnow_iso()),
        )

    counts = vote_counts(conn, blog_id)
    return counts["like"], counts["dislike"]


def vote_counts(conn: Any, blog_id: int) -> Dict[str, int]:
    rows = conn.execute(
        "SELECT vote, COUNT(*) AS n FROM blog_votes WHERE blog_id=? GROUP BY vote",
        (int(blog_id),),
    ).fetchall()
    counts = {v: 0 for v in VOTES}
    for r in rows:
        counts[str(r["vote"])] = int(r["n"])
    return counts


def delete_blog(conn: Any, *, blog_id: int, user_id: int, as_admin: bool = False) -> None:
    """Delete a blog. Only its creator may delete it unless `as_admin` is set."""
    row = get_blog(conn, blog_id)
    if row is None:
        raise NotFound("Blog not found")
    if not as_admin and int(row["created_by"]) != int(user_id):
        raise Forbidden("You can't delete this blog")
    # Votes go with the blog.
    conn.execute("DELETE FROM blog_votes WHERE blog_id=?", (int(blog_id),))
    conn.execute("DELETE FROM blogs WHERE blog_id=?", (int(blog_id),))
