"""Index of function calls announced upstream but not yet completed."""

from typing import Any, Dict, Mapping, Optional


class PendingFunctionCalls:
    """
    Tracks function-call items between ``response.output_item.added`` and
    their completion.

    Tool names are indexed by both call id and item id, and item ids map to
    call ids, so a completion event that only carries the item id can still be
    answered with the right ``call_id``.
    """

    def __init__(self):
        self.tool_names: Dict[str, str] = {}
        self.call_ids: Dict[str, str] = {}

    def register(self, item: Mapping[str, Any]) -> None:
        call_id = item.get("call_id")
        item_id = item.get("id")
        tool_name = item.get("name") or "unknown"
        if call_id:
            self.tool_names[call_id] = tool_name
        if item_id:
            self.tool_names[item_id] = tool_name
        if item_id and call_id:
            self.call_ids[item_id] = call_id

    def resolve_call_id(self, item: Mapping[str, Any]) -> Optional[str]:
        return item.get("call_id") or self.call_ids.get(item.get("id"))

    def resolve_tool_name(self, item: Mapping[str, Any]) -> Optional[str]:
        if item.get("name"):
            return item["name"]
        for key in (item.get("call_id"), item.get("id")):
            if key and key in self.tool_names:
                return self.tool_names[key]
        return None

    def complete(self, item: Mapping[str, Any]) -> None:
        item_id = item.get("id")
        call_id = self.resolve_call_id(item)
        for key in (call_id, item_id):
            if key:
                self.tool_names.pop(key, None)
        if item_id:
            self.call_ids.pop(item_id, None)

    def __contains__(self, key: str) -> bool:
        return key in self.tool_names
