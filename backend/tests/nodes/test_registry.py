# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for the node registry and node schema contract
"""

import pytest

from chatflow.engine.exceptions import UnknownNodeTypeError
from chatflow.nodes.base import BaseNode, NodeParameter, is_blank
from chatflow.nodes.registry import NodeRegistry


BUILT_IN = {
    "chatTrigger", "telegramTrigger", "webhookTrigger",
    "telegramSendMessage", "chatResponse", "aiAgent",
    "facebookSendMessage", "instagramSendDM", "whatsappSendMessage", "linkedinCreatePost",
    "httpRequest", "dataStorage",
    "if", "switch", "filter", "merge",
}


def test_default_registry_has_built_ins(registry):
    assert set(registry.list_types()) == BUILT_IN


def test_aliases_resolve(registry):
    assert registry.get("manualTrigger").type == "webhookTrigger"
    assert registry.get("chatTriggerResponse").type == "chatResponse"
    assert registry.is_trigger("trigger") is True


def test_trigger_detection(registry):
    assert registry.is_trigger("chatTrigger") is True
    assert registry.is_trigger("chatResponse") is False
    assert registry.is_trigger("unknown") is False


def test_unknown_type(registry):
    assert registry.has("unknown") is False
    with pytest.raises(UnknownNodeTypeError):
        registry.create("unknown")


def test_every_node_describes_itself(registry):
    for description in registry.describe():
        assert description["type"] in BUILT_IN
        assert description["category"] in ("trigger", "action", "logic")
        for name in description["required"]:
            assert name in description["parameters"]


def test_register_requires_type_tag():
    class Nameless(BaseNode):
        pass

    with pytest.raises(ValueError):
        NodeRegistry().register(Nameless)


class TestSchemaValidation:
    class Sample(BaseNode):
        type = "sample"
        parameters = {
            "name": NodeParameter(label="Name", required=True),
            "count": NodeParameter(type="number", label="Count", min=1, max=5),
            "mode": NodeParameter(type="options", label="Mode", options=["a", "b"]),
        }

    def test_valid(self):
        assert self.Sample().validate_config({"name": "x", "count": "3", "mode": "a"}).valid is True

    def test_errors_are_collected(self):
        result = self.Sample().validate_config({"name": " ", "count": 9, "mode": "c"})
        assert result.errors == ["Name is required", "Count must be at most 5", "Mode must be one of: a, b"]

    def test_not_a_number(self):
        result = self.Sample().validate_config({"name": "x", "count": "many"})
        assert result.errors == ["Count must be a number"]

    def test_unresolved_template_is_missing_only_at_run_time(self):
        config = {"name": "{{user.name}}"}
        assert self.Sample().validate_config(config).valid is True
        assert self.Sample().validate_config(config, resolved=True).errors == ["Name is required"]

    def test_validation_does_not_touch_config(self):
        config = {"name": "x"}
        self.Sample().validate_config(config, resolved=True)
        assert config == {"name": "x"}


@pytest.mark.parametrize("value,expected", [
    (None, True),
    ("", True),
    ("  ", True),
    ("{{message.chat.id}}", True),
    ("Hi {{name}}", False),
    ([], True),
    (0, False),
    ("text", False),
])
def test_is_blank(value, expected):
    assert is_blank(value) is expected
