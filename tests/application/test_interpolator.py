from __future__ import annotations

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_hierarchical_config.adapters.lookups.default import EnvironmentLookup, FunctionLookup, MapLookup
from lib_hierarchical_config.application.interpolator import Interpolator, first_element_to_string
from lib_hierarchical_config.domain.errors import InterpolationCycleError


def store_interpolator(values: dict[str, object]) -> Interpolator:
    return Interpolator(default_lookups=[MapLookup(values)])


@given(st.text().filter(lambda text: "${" not in text))
def test_text_without_variables_is_identity(text: str) -> None:
    assert Interpolator().interpolate(text) == text


@pytest.mark.parametrize("value", [None, 5, 2.5, True, ["${x}"], {"a": "${x}"}])
def test_non_strings_pass_through(value: object) -> None:
    assert store_interpolator({"x": "1"}).interpolate(value) == value


def test_prefix_lookup() -> None:
    interpolator = Interpolator({"env": EnvironmentLookup({"HOME": "/home/demo"})})
    assert interpolator.interpolate("home=${env:HOME}") == "home=/home/demo"


def test_unknown_prefix_falls_back_to_default_lookups() -> None:
    interpolator = store_interpolator({"db:host": "localhost"})
    assert interpolator.interpolate("${db:host}") == "localhost"


def test_unresolved_variable_stays_verbatim() -> None:
    assert store_interpolator({}).interpolate("a ${missing} b") == "a ${missing} b"
    assert store_interpolator({}).interpolate("${missing}") == "${missing}"


def test_escaped_variable() -> None:
    interpolator = store_interpolator({"var": "x"})
    assert interpolator.interpolate("$${var}") == "${var}"
    assert interpolator.interpolate("$${${var}}") == "${x}"
    assert interpolator.interpolate("cost: $5") == "cost: $5"


def test_unterminated_variable_is_literal() -> None:
    assert store_interpolator({"b": "1"}).interpolate("a ${b") == "a ${b"
    assert store_interpolator({"b": "1"}).interpolate("${ ${b}") == "${ 1"


def test_chained_references() -> None:
    interpolator = store_interpolator({"base": "/x", "first": "${base}/y", "second": "${first}/z"})
    assert interpolator.interpolate("${second}") == "/x/y/z"
    assert interpolator.interpolate("path=${second}") == "path=/x/y/z"


def test_whole_variable_keeps_type() -> None:
    interpolator = store_interpolator({"port": 8080, "paths": ["/a", "${root}/b"], "root": "/r"})
    assert interpolator.interpolate("${port}") == 8080
    assert interpolator.interpolate("${paths}") == ["/a", "/r/b"]


def test_list_contributes_first_element() -> None:
    interpolator = store_interpolator({"paths": ["/a", "/b"]})
    assert interpolator.interpolate("dir=${paths}") == "dir=/a"
    assert store_interpolator({"empty": []}).interpolate("x${empty}") == "x${empty}"


def test_nested_variable_names() -> None:
    interpolator = Interpolator(
        {"env": EnvironmentLookup({"HOME": "/home/demo"})},
        default_lookups=[MapLookup({"which": "HOME"})],
    )
    assert interpolator.interpolate("${env:${which}}") == "/home/demo"


def test_direct_cycle_raises() -> None:
    interpolator = store_interpolator({"a": "${b}", "b": "${a}"})
    with pytest.raises(InterpolationCycleError) as excinfo:
        interpolator.interpolate("${a}")
    assert excinfo.value.cycle == ("a", "b", "a")


def test_self_reference_raises_inside_text() -> None:
    with pytest.raises(InterpolationCycleError):
        store_interpolator({"loop": "x${loop}"}).interpolate("value: ${loop}")


def test_repeated_reference_is_not_a_cycle() -> None:
    interpolator = store_interpolator({"a": "1", "b": "${a}${a}"})
    assert interpolator.interpolate("${b}-${a}") == "11-1"


def test_register_and_deregister() -> None:
    interpolator = Interpolator()
    interpolator.register_lookup("app", MapLookup({"name": "demo"}))
    assert interpolator.prefixes() == frozenset({"app"})
    assert interpolator.interpolate("${app:name}") == "demo"
    assert interpolator.deregister_lookup("app") is True
    assert interpolator.deregister_lookup("app") is False
    assert interpolator.interpolate("${app:name}") == "${app:name}"


def test_register_rejects_non_lookups() -> None:
    interpolator = Interpolator()
    with pytest.raises(TypeError):
        interpolator.register_lookup("bad", object())  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        interpolator.register_lookup(1, MapLookup({}))  # type: ignore[arg-type]


def test_lookup_snapshot_is_read_only() -> None:
    interpolator = Interpolator({"app": MapLookup({})})
    snapshot = interpolator.lookups()
    interpolator.register_lookup("other", MapLookup({}))
    assert set(snapshot) == {"app"}
    with pytest.raises(TypeError):
        snapshot["x"] = MapLookup({})  # type: ignore[index]


def test_default_lookup_management() -> None:
    store = MapLookup({"x": "1"})
    interpolator = Interpolator()
    interpolator.add_default_lookup(store)
    assert interpolator.default_lookups() == (store,)
    assert interpolator.interpolate("${x}") == "1"
    assert interpolator.remove_default_lookup(store) is True
    assert interpolator.remove_default_lookup(store) is False


def test_parent_is_asked_last() -> None:
    parent = store_interpolator({"x": "parent", "y": "from-parent"})
    child = Interpolator(default_lookups=[MapLookup({"x": "child"})], parent=parent)
    assert child.interpolate("${x} ${y}") == "child from-parent"


def test_failing_lookup_degrades_to_unresolved(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_hierarchical_config")
    interpolator = Interpolator({"boom": FunctionLookup(lambda name: 1 / 0)})
    assert interpolator.interpolate("${boom:x}") == "${boom:x}"
    assert any(record.getMessage() == "lookup_failed" for record in caplog.records)


def test_custom_string_converter() -> None:
    interpolator = Interpolator(
        default_lookups=[MapLookup({"paths": ["/a", "/b"]})],
        string_converter=lambda value: ",".join(value) if isinstance(value, list) else str(value),
    )
    assert interpolator.interpolate("dirs=${paths}") == "dirs=/a,/b"


def test_with_defaults_registers_builtins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIB_HIERARCHICAL_CONFIG_DEFAULT_LOOKUPS", "env,base64Encoder")
    monkeypatch.setenv("HIER_CONFIG_TEST", "on")
    interpolator = Interpolator.with_defaults(prefix_lookups={"app": MapLookup({"n": "1"})})
    assert interpolator.prefixes() == frozenset({"env", "base64Encoder", "app"})
    assert interpolator.interpolate("${env:HIER_CONFIG_TEST}/${base64Encoder:Hi}/${app:n}") == "on/SGk=/1"


def test_first_element_to_string() -> None:
    assert first_element_to_string(("a", "b")) == "a"
    assert first_element_to_string(None) is None
    assert first_element_to_string(b"raw") == "raw"
