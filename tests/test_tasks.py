"""Tests for the warframestat provider, the bundled event tasks and `gated`."""

from unittest.mock import MagicMock

import httpx
import pytest

from content_sync.content import ChangeGate, FileWriteIntent
from content_sync.errors import TaskError
from content_sync.providers import PLATFORMS, WarframestatProvider
from content_sync.repository import RepositoryDescriptor
from content_sync.tasks import (
    BalorFomorianEventTask,
    ThermiaFracturesEventTask,
    event_tasks,
    gated,
)
from content_sync.workflow import ExecutionContext

CONTEXT = ExecutionContext(
    repository=RepositoryDescriptor(url="u", directory="warframeblog", branch="develop")
)

EVENTS = {
    "pc": [
        {"description": "Thermia Fractures", "id": "t1"},
        {"description": "Balor Fomorian", "victimNode": "Larunda (Mercury)"},
    ],
    "ps4": [{"description": "Balor Fomorian", "victimNode": "Naeglar (Eris)"}],
    "xb1": [],
    "swi": [],
}


def _handler(request: httpx.Request) -> httpx.Response:
    platform = request.url.path.split("/")[1]
    return httpx.Response(200, json=EVENTS.get(platform, []))


@pytest.fixture
def provider() -> WarframestatProvider:
    client = httpx.Client(transport=httpx.MockTransport(_handler))
    return WarframestatProvider("https://api.example/", client=client)


def test_get_event_data_tags_platforms_and_skips_absent_events(
    provider: WarframestatProvider,
) -> None:
    """Verifies matching events are tagged and platforms without one are dropped."""
    events = provider.get_event_data("Balor Fomorian")

    assert [(e["platform"], e["victimNode"]) for e in events] == [
        ("PC", "Larunda (Mercury)"),
        ("PS4", "Naeglar (Eris)"),
    ]


def test_failing_platform_raises_task_error(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verifies one unreachable platform fails the whole lookup."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/pc/"):
            return httpx.Response(500)
        return _handler(request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = WarframestatProvider("https://api.example", client=client)

    with pytest.raises(TaskError, match="PC") as excinfo:
        BalorFomorianEventTask(provider)(CONTEXT)

    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)
    assert "Cannot retrieve data by url https://api.example/pc/events" in caplog.text


def test_non_list_payload_raises_task_error() -> None:
    """Verifies an error object in place of the event list is not read as 'no events'."""
    client = httpx.Client(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"error": "maintenance"})
        )
    )
    provider = WarframestatProvider("https://api.example", client=client)

    with pytest.raises(TaskError, match="payload"):
        provider.get_event_data("Thermia Fractures")


def test_get_event_data_queries_every_platform() -> None:
    """Verifies one request per platform against `<api>/<platform>/events`."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=[])

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = WarframestatProvider("https://api.example", client=client)

    assert provider.get_event_data("Anything") == []
    assert seen == [f"https://api.example/{p.id}/events" for p in PLATFORMS]


def test_balor_task_builds_event_place_intent(
    provider: WarframestatProvider,
) -> None:
    """Verifies the Balor Fomorian task maps victim nodes per platform."""
    intent = BalorFomorianEventTask(provider)(CONTEXT)

    assert intent == FileWriteIntent(
        repo_folder="warframeblog",
        file="balor-fomorian-event.md",
        content_type="content",
        folder="content",
        data={
            "eventPlace": [
                {"platform": "PC", "place": "Larunda (Mercury)"},
                {"platform": "PS4", "place": "Naeglar (Eris)"},
            ]
        },
    )


def test_thermia_task_builds_available_on_intent(
    provider: WarframestatProvider,
) -> None:
    """Verifies the Thermia Fractures task lists the platforms running it."""
    intent = ThermiaFracturesEventTask(provider)(CONTEXT)

    assert intent.file == "thermia-fractures-event-guide.md"
    assert intent.data == {"availableOn": [{"platform": "PC"}]}


def test_gated_applies_every_intent_and_counts_writes() -> None:
    """Verifies single intents, iterables and None are all accepted."""
    gate = MagicMock(spec=ChangeGate)
    gate.apply.side_effect = [True, False, True]
    a, b, c = (FileWriteIntent(repo_folder="r", file=f) for f in "abc")

    task = gated(gate, lambda ctx: a, lambda ctx: [b, c], lambda ctx: None)

    assert task(CONTEXT) == 2
    assert [args[0] for args, _ in gate.apply.call_args_list] == [a, b, c]


def test_gated_stops_at_first_error() -> None:
    """Verifies a failing producer aborts the task before later producers run."""
    gate = MagicMock(spec=ChangeGate)
    later = MagicMock()

    def broken(ctx: ExecutionContext) -> None:
        raise RuntimeError("no data")

    task = gated(gate, broken, later)

    with pytest.raises(RuntimeError, match="no data"):
        task(CONTEXT)
    later.assert_not_called()


def test_event_tasks_share_provider(provider: WarframestatProvider) -> None:
    """Verifies the bundled producers are built around one provider."""
    producers = event_tasks(provider)

    assert [type(p) for p in producers] == [
        BalorFomorianEventTask,
        ThermiaFracturesEventTask,
    ]
    assert all(p.provider is provider for p in producers)
