from voice_gateway.bot.function_calls import PendingFunctionCalls


def test_register_indexes_by_call_and_item_id():
    pending = PendingFunctionCalls()
    pending.register({"type": "function_call", "name": "faq_lookup_tool", "call_id": "c1", "id": "i1"})

    assert "c1" in pending
    assert "i1" in pending
    assert pending.call_ids == {"i1": "c1"}


def test_resolve_from_item_id_only():
    pending = PendingFunctionCalls()
    pending.register({"name": "convert_temperature_tool", "call_id": "c1", "id": "i1"})

    done = {"type": "function_call", "status": "completed", "id": "i1"}
    assert pending.resolve_call_id(done) == "c1"
    assert pending.resolve_tool_name(done) == "convert_temperature_tool"


def test_event_fields_take_precedence():
    pending = PendingFunctionCalls()
    pending.register({"name": "faq_lookup_tool", "call_id": "c1", "id": "i1"})

    done = {"name": "other_tool", "call_id": "c2", "id": "i1"}
    assert pending.resolve_call_id(done) == "c2"
    assert pending.resolve_tool_name(done) == "other_tool"


def test_unknown_item():
    pending = PendingFunctionCalls()
    assert pending.resolve_call_id({"id": "missing"}) is None
    assert pending.resolve_tool_name({"id": "missing"}) is None


def test_complete_removes_entries():
    pending = PendingFunctionCalls()
    pending.register({"name": "faq_lookup_tool", "call_id": "c1", "id": "i1"})
    pending.register({"name": "faq_lookup_tool", "call_id": "c2", "id": "i2"})

    pending.complete({"id": "i1"})
    assert "c1" not in pending
    assert "i1" not in pending
    assert "c2" in pending
    assert pending.call_ids == {"i2": "c2"}
