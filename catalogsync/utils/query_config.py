# File: catalogsync/utils/query_config.py
"""
Helpers turning request-level listing options into a list configuration.
"""

from typing import Any, Dict, Iterable, List, Optional


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def prepare_list_query(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    order: Optional[str] = None,
    fields: Optional[str] = None,
    expand: Optional[str] = None,
    default_relations: Optional[Iterable[str]] = None,
    default_limit: int = 50,
) -> Dict[str, Any]:
    """
    Build a list configuration from query-style options.

    Args:
        limit: Page size
        offset: Number of records to skip
        order: Field to order by, prefixed with "-" for descending
        fields: Comma separated fields to select
        expand: Comma separated relations to load; replaces the defaults
        default_relations: Relations loaded when expand is not given
        default_limit: Page size when limit is not given

    Returns:
        Dictionary with skip, take, order, select and relations keys
    """
    relations = _split_csv(expand) if expand else list(default_relations or [])

    if order:
        field = order.lstrip("-")
        order_config = {field: "DESC" if order.startswith("-") else "ASC"}
    else:
        order_config = {"created_at": "DESC"}

    return {
        "skip": offset or 0,
        "take": limit or default_limit,
        "order": order_config,
        "select": _split_csv(fields) or None,
        "relations": relations,
    }
