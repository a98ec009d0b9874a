"""dbt metadata parser.

dbt prefixes statements with a JSON block comment like
``/* {"app": "dbt", "node_id": "model.project.orders", ...} */``.
Query tags arrive as ``/* QUERY_TAG:nightly_load */``.
"""

import json
import re
from dataclasses import dataclass

_FIRST_BLOCK_COMMENT = re.compile(r"/\*(.*?)\*/", re.DOTALL)
_QUERY_TAG = re.compile(r"/\*.*?QUERY_TAG:(.*?)\*/", re.DOTALL)


@dataclass
class DbtMetadata:
    app: str | None = None
    node_id: str | None = None
    profile_name: str | None = None
    target_name: str | None = None
    version: str | None = None


def extract_query_tag(sql: str) -> str | None:
    """Return the QUERY_TAG value, if the SQL carries one."""
    match = _QUERY_TAG.search(sql)
    if match:
        tag = match.group(1).strip()
        return tag or None
    return None


def extract_dbt_metadata(sql: str) -> DbtMetadata | None:
    """Parse the first block comment as dbt JSON metadata."""
    match = _FIRST_BLOCK_COMMENT.search(sql)
    if not match:
        return None

    body = match.group(1).strip()
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        # Ordinary comment
        return None

    if not isinstance(parsed, dict) or not parsed.get("app"):
        return None

    return DbtMetadata(
        app=parsed.get("app"),
        node_id=parsed.get("node_id"),
        profile_name=parsed.get("profile_name"),
        target_name=parsed.get("target_name"),
        version=parsed.get("dbt_version"),
    )


def is_dbt_query(sql: str, client_application: str | None) -> bool:
    """Check whether a statement was produced by dbt."""
    if client_application and "dbt" in client_application.lower():
        return True
    meta = extract_dbt_metadata(sql)
    return bool(meta and str(meta.app).lower() == "dbt")
