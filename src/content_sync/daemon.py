import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .backend import VersionControlBackend
from .config import Config
from .constants import APP_NAME, LOG_FILE
from .content import ChangeGate
from .providers import WarframestatProvider
from .repository import WorkingTreeManager
from .tasks import event_tasks, gated
from .workflow import SyncWorkflow

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def build_workflow(config: Config) -> tuple[SyncWorkflow, ChangeGate]:
    """Wires the backend, workflow and change gate from configuration.

    Args:
        config (Config): The loaded configuration.

    Returns:
        tuple[SyncWorkflow, ChangeGate]: The workflow and the gate its tasks
        write through; both resolve paths under the same repository root.
    """
    trees = WorkingTreeManager(config.core.base_dir, config.core.repos_folder)
    backend = VersionControlBackend(config.git, trees)
    workflow = SyncWorkflow(backend, reset_attempts=config.workflow.reset_attempts)
    return workflow, ChangeGate(trees)


def run_cycle(
    config: Config,
    workflow: SyncWorkflow | None = None,
    gate: ChangeGate | None = None,
    provider: WarframestatProvider | None = None,
) -> dict[str, bool | None]:
    """Runs every bundled content task once against each configured repository.

    A failing repository is logged and does not stop the others.

    Args:
        config (Config): The loaded configuration.
        workflow (SyncWorkflow | None): Reused across cycles by the daemon loop.
        gate (ChangeGate | None): The gate paired with `workflow`.
        provider (WarframestatProvider | None): Source data client.

    Returns:
        dict[str, bool | None]: Per repository directory, True if published,
        False if unchanged, None if the run failed or was skipped.
    """
    if workflow is None or gate is None:
        workflow, gate = build_workflow(config)

    owns_provider = provider is None
    if provider is None:
        provider = WarframestatProvider(
            config.warframestat.api_url, timeout=config.warframestat.timeout
        )

    results: dict[str, bool | None] = {}
    try:
        task = gated(gate, *event_tasks(provider))
        for descriptor in config.repositories:
            if not descriptor.url:
                logger.warning(f"SKIPPED {descriptor.directory}: No URL configured.")
                results[descriptor.directory] = None
                continue
            try:
                results[descriptor.directory] = workflow.run(descriptor, task)
            except Exception:
                logger.exception(f"LOOP ERROR {descriptor.directory}")
                results[descriptor.directory] = None
    finally:
        if owns_provider:
            provider.close()

    return results


def setup_logging(interactive: bool, config: Config) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to stderr
                            and to a rotating log file.
        config (Config): Supplies the log size limit.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        try:
            LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                LOG_FILE,
                maxBytes=config.limits.max_log_size,
                backupCount=5,
            )
        except OSError as e:
            logger.warning(f"Could not open log file {LOG_FILE}: {e}")
            return
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def main(
    interactive: bool = False,
    config_path: Path | None = None,
    max_cycles: int | None = None,
) -> None:
    """The scheduler loop.

    Runs one cycle per configured interval. Cycles run back to back on one
    thread, so no two runs ever touch the same working tree at once.

    Args:
        interactive (bool, optional): Run a single cycle and return.
                                      Defaults to False.
        config_path (Path | None, optional): Explicit config file.
        max_cycles (int | None, optional): Stop after this many cycles.
                                           Defaults to running forever.
    """
    config = Config.load(config_path)
    setup_logging(interactive, config)

    if interactive:
        max_cycles = 1

    workflow, gate = build_workflow(config)
    provider = WarframestatProvider(
        config.warframestat.api_url, timeout=config.warframestat.timeout
    )

    cycles = 0
    try:
        while True:
            results = run_cycle(config, workflow, gate, provider)
            published = [d for d, r in results.items() if r]
            logger.info(
                f"CYCLE {cycles + 1}: {len(results)} repositories, "
                f"{len(published)} published."
            )
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            time.sleep(config.scheduler.interval)
    except KeyboardInterrupt:
        logger.info("STOPPED: Interrupted.")
    finally:
        provider.close()


if __name__ == "__main__":
    main()
