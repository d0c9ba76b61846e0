"""Spec change watcher using watchfiles.

Monitors the specs and steering directories of one project and turns raw
filesystem changes into SpecChangeEvent / SteeringChangeEvent objects for
registered listeners.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from watchfiles import Change, awatch

from spec_workflow import config
from spec_workflow.models import ChangeEvent, SpecChangeEvent, SteeringChangeEvent
from spec_workflow.observability import record_watcher_event
from spec_workflow.paths import get_specs_root, get_steering_path, to_posix

logger = logging.getLogger("spec_workflow.watcher")

Listener = Callable[[ChangeEvent], Any]

_ACTIONS = {
    Change.added: "created",
    Change.modified: "updated",
    Change.deleted: "deleted",
}


def _root_variants(path: Path) -> list[str]:
    roots = [to_posix(os.path.abspath(str(path))).rstrip("/")]
    resolved = to_posix(str(path.resolve())).rstrip("/")
    if resolved not in roots:
        roots.append(resolved)
    return roots


def _relative_parts(path: str, roots: list[str]) -> Optional[list[str]]:
    for root in roots:
        if path.startswith(root + "/"):
            return [part for part in path[len(root) + 1:].split("/") if part]
    return None


class SpecWatcher:
    """Background watcher that re-derives spec state on change.

    Files already present when ``start()`` runs produce no events; only changes
    made afterwards are reported. Each change is handled on its own with no
    coalescing beyond what watchfiles batches.
    """

    def __init__(
        self,
        project_path: Path | str,
        parser,
        *,
        debounce_ms: Optional[int] = None,
        step_ms: Optional[int] = None,
        force_polling: Optional[bool] = None,
        poll_delay_ms: Optional[int] = None,
    ):
        self.project_path = Path(project_path)
        self.parser = parser
        self.specs_root = get_specs_root(self.project_path)
        self.steering_root = get_steering_path(self.project_path)
        self._specs_roots = _root_variants(self.specs_root)
        self._steering_roots = _root_variants(self.steering_root)

        self.debounce_ms = config.WATCHER_DEBOUNCE_MS if debounce_ms is None else debounce_ms
        self.step_ms = config.WATCHER_STEP_MS if step_ms is None else step_ms
        self.force_polling = config.WATCHER_FORCE_POLLING if force_polling is None else force_polling
        self.poll_delay_ms = config.WATCHER_POLL_DELAY_MS if poll_delay_ms is None else poll_delay_ms
        self.ready_timeout_ms = config.WATCHER_READY_TIMEOUT_MS

        self._listeners: list[Listener] = []
        self._listener_tasks: set[asyncio.Task] = set()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._ready: Optional[asyncio.Event] = None
        self._running = False

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start watching in a background task.

        Returns once the underlying watch is subscribed, so any change made
        after this call is reported.
        """
        if self._running:
            logger.warning("Spec watcher already running")
            return

        self.specs_root.mkdir(parents=True, exist_ok=True)
        self.steering_root.mkdir(parents=True, exist_ok=True)

        self._running = True
        self._stop_event = asyncio.Event()
        self._ready = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(self._stop_event, self._ready))
        await self._ready.wait()
        logger.info(f"Spec watcher started for {self.project_path}")

    async def stop(self) -> None:
        """Stop the watcher and wait for in-flight listener tasks."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.wait_for_listeners()
        logger.info("Spec watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, stop_event: asyncio.Event, ready: asyncio.Event) -> None:
        watch_paths = [str(p.resolve()) for p in (self.specs_root, self.steering_root) if p.exists()]
        if not watch_paths:
            logger.warning("No watch paths exist, spec watcher has nothing to monitor")
            self._running = False
            ready.set()
            return

        logger.info(f"Watching {len(watch_paths)} directories: {watch_paths}")

        try:
            async for changes in awatch(
                *watch_paths,
                stop_event=stop_event,
                debounce=self.debounce_ms,
                step=self.step_ms,
                force_polling=self.force_polling,
                poll_delay_ms=self.poll_delay_ms,
                rust_timeout=self.ready_timeout_ms,
                yield_on_timeout=True,
            ):
                # first yield, timeout or not, means the watch is subscribed
                ready.set()
                if not self._running:
                    break
                if not changes:
                    continue
                classified = self._classify_changes(changes)
                if classified:
                    logger.debug(f"Detected {len(classified)} markdown changes")
                for action, path in classified:
                    await self.handle_change(action, path)
        except asyncio.CancelledError:
            logger.info("Spec watcher task cancelled")
        except Exception as e:
            logger.error(f"Spec watcher error: {e}")
        finally:
            self._running = False
            ready.set()

    def _classify_changes(self, changes: set[tuple[Change, str]]) -> list[tuple[str, str]]:
        """Map raw watchfiles changes to (action, path) pairs for markdown files."""
        result = []
        for change_type, path_str in sorted(changes, key=lambda item: (item[1], item[0].value)):
            if Path(path_str).suffix != ".md":
                continue
            action = _ACTIONS.get(change_type)
            if action:
                result.append((action, path_str))
        return result

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def classify_path(self, path: str) -> Optional[tuple[str, str]]:
        """Return ``("spec", specName)`` or ``("steering", documentName)``, or None.

        Spec paths need at least ``<specs root>/<name>/<file>``; anything else
        under the specs root is treated as malformed.
        """
        normalized = to_posix(os.path.abspath(to_posix(path)))
        if not normalized.endswith(".md"):
            return None

        parts = _relative_parts(normalized, self._specs_roots)
        if parts is not None:
            if len(parts) < 2:
                return None
            return "spec", parts[0]

        parts = _relative_parts(normalized, self._steering_roots)
        if parts:
            return "steering", parts[-1][: -len(".md")]
        return None

    async def handle_change(self, action: str, path: str) -> Optional[ChangeEvent]:
        """Classify one change, build its event and emit it to listeners.

        Returns the emitted event, or None when the change was dropped.
        """
        project_id = self.project_path.name
        classified = self.classify_path(path)
        if classified is None:
            logger.debug(f"Ignoring change outside the workflow layout: {path}")
            record_watcher_event("unknown", action, "dropped", project_id=project_id)
            return None

        kind, name = classified
        try:
            if kind == "spec":
                data = None if action == "deleted" else self.parser.get_spec(name)
                event: ChangeEvent = SpecChangeEvent(action=action, name=name, data=data)
            else:
                event = SteeringChangeEvent(
                    action=action,
                    name=name,
                    steeringStatus=self.parser.get_steering_status(),
                )
        except Exception as e:
            logger.error(f"Error handling {action} for {path}: {e}", exc_info=True)
            record_watcher_event(kind, action, "error", project_id=project_id)
            return None

        logger.info(f"{kind.capitalize()} change detected: {name} was {action}")
        self._emit(event)
        record_watcher_event(kind, action, "emitted", project_id=project_id)
        return event

    def _emit(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
            except Exception as e:
                logger.error(f"Change listener {listener!r} failed: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async change listener failed: {exc}", exc_info=exc)

    async def wait_for_listeners(self) -> None:
        """Wait until every pending async listener has finished."""
        while self._listener_tasks:
            await asyncio.gather(*list(self._listener_tasks), return_exceptions=True)
