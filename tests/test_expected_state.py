from __future__ import annotations

from core.expected_state import ExpectedStateStore, payload_from_onelink_url


class StepClock:
    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def __call__(self) -> float:
        return self._values.pop(0)


def test_empty_store() -> None:
    assert ExpectedStateStore().get() is None


def test_last_write_wins() -> None:
    store = ExpectedStateStore(clock=StepClock(1.0, 2.0))

    store.set("https://a.onelink.me/1", {"deep_link_value": "a"})
    store.set("https://a.onelink.me/2", {"deep_link_value": "b"})

    latest = store.get()
    assert latest is not None
    assert latest.source_url == "https://a.onelink.me/2"
    assert latest.payload == {"deep_link_value": "b"}
    assert latest.captured_at_ms == 2000


def test_capture_time_never_goes_backwards() -> None:
    store = ExpectedStateStore(clock=StepClock(5.0, 3.0))

    first = store.set("https://a.onelink.me/1", {})
    second = store.set("https://a.onelink.me/2", {})

    assert second.captured_at_ms >= first.captured_at_ms == 5000


def test_stored_payload_is_a_copy() -> None:
    store = ExpectedStateStore()
    payload = {"deep_link_value": "a"}

    store.set("https://a.onelink.me/1", payload)
    payload["deep_link_value"] = "changed"

    latest = store.get()
    assert latest is not None and latest.payload == {"deep_link_value": "a"}


def test_clear() -> None:
    store = ExpectedStateStore()
    store.set("https://a.onelink.me/1", {})

    store.clear()

    assert store.get() is None


def test_payload_from_onelink_url() -> None:
    url = "https://brand.onelink.me/H5hv?pid=email&c=spring&deep_link_value=shoes&af_sub1=&tag=a&tag=b"

    payload = payload_from_onelink_url(url)

    assert payload == {
        "pid": "email",
        "c": "spring",
        "deep_link_value": "shoes",
        "af_sub1": "",
        "tag": ["a", "b"],
    }
    assert payload_from_onelink_url("https://brand.onelink.me/H5hv") == {}
