from typing import Any


def envelope(data: Any = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": True}
    body.update(extra)
    body["data"] = {} if data is None else data
    return body


def list_envelope(items: list) -> dict:
    return envelope(items, count=len(items))
