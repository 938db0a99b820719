from collections.abc import Callable, Iterable

from .constants import DEFAULT_CONTENT_TYPE
from .content import ChangeGate, FileWriteIntent
from .providers import BALOR_FOMORIAN, THERMIA_FRACTURES, WarframestatProvider
from .workflow import ContentTask, ExecutionContext

IntentProducer = Callable[
    [ExecutionContext], FileWriteIntent | Iterable[FileWriteIntent] | None
]
"""Computes the front-matter a file should hold; knows nothing about git."""


def _as_intents(
    produced: FileWriteIntent | Iterable[FileWriteIntent] | None,
) -> list[FileWriteIntent]:
    if produced is None:
        return []
    if isinstance(produced, FileWriteIntent):
        return [produced]
    return list(produced)


def gated(gate: ChangeGate, *producers: IntentProducer) -> ContentTask:
    """Turns intent producers into a workflow task that writes through `gate`.

    Producers run in order; each intent is applied as soon as its producer
    returns, and the first error stops the task.

    Args:
        gate (ChangeGate): Writes files whose front-matter changed.
        *producers (IntentProducer): The producers to run.

    Returns:
        ContentTask: A task returning how many files were rewritten.
    """

    def task(context: ExecutionContext) -> int:
        written = 0
        for producer in producers:
            for intent in _as_intents(producer(context)):
                if gate.apply(intent):
                    written += 1
        return written

    return task


class BalorFomorianEventTask:
    """Records on which nodes the Balor Fomorian event is running, per platform."""

    file = "balor-fomorian-event.md"

    def __init__(self, provider: WarframestatProvider):
        self.provider = provider

    def __call__(self, context: ExecutionContext) -> FileWriteIntent:
        event_data = self.provider.get_event_data(BALOR_FOMORIAN)
        event_place = [
            {"platform": data["platform"], "place": data.get("victimNode")}
            for data in event_data
        ]
        return FileWriteIntent(
            repo_folder=context.repository.directory,
            file=self.file,
            content_type=DEFAULT_CONTENT_TYPE,
            folder=DEFAULT_CONTENT_TYPE,
            data={"eventPlace": event_place},
        )


class ThermiaFracturesEventTask:
    """Records which platforms currently run Thermia Fractures."""

    file = "thermia-fractures-event-guide.md"

    def __init__(self, provider: WarframestatProvider):
        self.provider = provider

    def __call__(self, context: ExecutionContext) -> FileWriteIntent:
        event_data = self.provider.get_event_data(THERMIA_FRACTURES)
        available_on = [{"platform": data["platform"]} for data in event_data]
        return FileWriteIntent(
            repo_folder=context.repository.directory,
            file=self.file,
            content_type=DEFAULT_CONTENT_TYPE,
            folder=DEFAULT_CONTENT_TYPE,
            data={"availableOn": available_on},
        )


def event_tasks(provider: WarframestatProvider) -> list[IntentProducer]:
    """All bundled event producers sharing one data provider."""
    return [BalorFomorianEventTask(provider), ThermiaFracturesEventTask(provider)]
