"""Tests for type inference and value resolution."""

from __future__ import annotations

import pytest

from ffctx.core.values import (
    DynamicReference,
    Empty,
    RawValue,
    Scalar,
    SerializedValue,
    ThemeColor,
    classify_value,
    infer_type,
    resolve_data_type,
    resolve_value,
)


class TestInferType:
    @pytest.mark.parametrize(
        "key, expected",
        [
            ("Button_uaqbabys", "Button"),
            ("TextField_x", "TextField"),
            ("Container_ur4ml9qw", "Container"),
            ("button_x", "Unknown"),
            ("Button", "Unknown"),
            ("_Button_x", "Unknown"),
            ("", "Unknown"),
            ("unknown", "Unknown"),
        ],
    )
    def test_infer(self, key, expected):
        assert infer_type(key) == expected


class TestClassifyValue:
    def test_variants(self):
        assert classify_value(None) == Empty()
        assert classify_value("hi") == Scalar("hi")
        assert classify_value({"inputValue": {"serializedValue": "s"}}) == SerializedValue("s")
        assert classify_value({"inputValue": {"themeColor": "primary"}}) == ThemeColor("primary")
        assert classify_value({"inputValue": {"value": 3}}) == RawValue("3")
        assert classify_value({"variable": {"source": "PAGE_STATE"}}) == DynamicReference()
        assert classify_value([1, 2]) == Empty()

    def test_input_value_beats_variable(self):
        raw = {"inputValue": "literal", "variable": {"source": "PAGE_STATE"}}
        assert classify_value(raw) == Scalar("literal")

    def test_null_input_value_falls_through_to_variable(self):
        assert classify_value({"inputValue": None, "variable": {}}) == DynamicReference()


class TestResolveValue:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, ""),
            ("Hello", "Hello"),
            (42, "42"),
            (1.5, "1.5"),
            (120.0, "120"),
            (True, ""),
            (False, ""),
            ({"inputValue": "Hi"}, "Hi"),
            ({"inputValue": 7}, "7"),
            ({"inputValue": True}, ""),
            ({"inputValue": float("inf")}, "Infinity"),
            ({"inputValue": {"serializedValue": "2024-01-01"}}, "2024-01-01"),
            ({"inputValue": {"themeColor": "primaryText"}}, "[theme:primaryText]"),
            ({"inputValue": {"value": "raw"}}, "raw"),
            ({"inputValue": {"serializedValue": True}}, "true"),
            ({"inputValue": {"serializedValue": None}}, "null"),
            ({"inputValue": {"value": False}}, "false"),
            ({"inputValue": {"themeColor": None}}, "[theme:null]"),
            ({"inputValue": {"somethingElse": 1}}, ""),
            ({"variable": {"source": "WIDGET_STATE"}}, "[dynamic]"),
            ({"mostRecentInputValue": "x"}, ""),
            ({}, ""),
        ],
    )
    def test_resolve(self, raw, expected):
        assert resolve_value(raw) == expected

    def test_serialized_value_takes_precedence(self):
        raw = {"inputValue": {"serializedValue": "s", "themeColor": "t", "value": "v"}}
        assert resolve_value(raw) == "s"


class TestResolveDataType:
    @pytest.mark.parametrize(
        "dt, expected",
        [
            ({"scalarType": "String"}, "String"),
            ({"listType": {"scalarType": "Integer"}}, "List<Integer>"),
            ({"listType": {}}, "unknown"),
            (
                {"scalarType": "DataStruct", "subType": {"dataStructIdentifier": {"name": "User"}}},
                "DataStruct:User",
            ),
            ({"scalarType": "DataStruct"}, "DataStruct"),
            ({"enumType": {"enumIdentifier": {"name": "Role"}}}, "Enum:Role"),
            ({}, "unknown"),
            (None, "unknown"),
        ],
    )
    def test_resolve(self, dt, expected):
        assert resolve_data_type(dt) == expected
