"""One-time compilation of signal and tunable bindings into update tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Set

from ..core import TUNABLE_KINDS, ValueKind, coerce_value
from .bindings import (
    SignalBinding,
    TunableBinding,
    kind_from_accessor,
    kind_from_value,
    resolve_kind,
)
from .channels import ChannelCache
from .tasks import SignalTask, TunableTask, reconcile

LOGGER = logging.getLogger(__name__)


@dataclass
class CompiledTasks:
    signals: List[SignalTask] = field(default_factory=list)
    tunables: List[TunableTask] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class TaskCompiler:
    """Turns declared bindings into ready-to-run tasks for one table.

    Bindings that cannot be compiled (unsupported kind, duplicate key, failing
    field read) are logged and skipped; the remaining bindings still compile.
    """

    def __init__(self, channels: ChannelCache, table: str) -> None:
        self._channels = channels
        self._table = table

    def compile(
        self,
        owner: Any,
        signals: Iterable[SignalBinding],
        tunables: Iterable[TunableBinding],
    ) -> CompiledTasks:
        compiled = CompiledTasks()

        seen: Set[str] = set()
        for binding in signals:
            task = self._compile_signal(binding, seen)
            if task is None:
                compiled.skipped.append(binding.key)
                continue
            compiled.signals.append(task)

        seen = set()
        for binding in tunables:
            task = self._compile_tunable(owner, binding, seen)
            if task is None:
                compiled.skipped.append(binding.key)
                continue
            compiled.tunables.append(task)

        LOGGER.info(
            "Compiled %d signals and %d tunables for %s",
            len(compiled.signals),
            len(compiled.tunables),
            self._table,
        )
        return compiled

    def _compile_signal(
        self, binding: SignalBinding, seen: Set[str]
    ) -> Optional[SignalTask]:
        if binding.key in seen:
            LOGGER.warning(
                "Duplicate signal key '%s' in %s; keeping the first declaration",
                binding.key,
                self._table,
            )
            return None

        if binding.kind is None:
            kind = kind_from_accessor(binding.accessor)
        else:
            kind = resolve_kind(binding.kind)
        if kind is None:
            LOGGER.warning(
                "Signal '%s' in %s has unsupported kind %r; skipping",
                binding.key,
                self._table,
                binding.kind,
            )
            return None

        seen.add(binding.key)
        publisher = self._channels.publisher(self._table, binding.key, kind)
        return SignalTask(
            binding.key,
            binding.accessor,
            publisher,
            kind=kind,
            on_change=binding.on_change,
            slow_scale=binding.slow_scale,
        )

    def _compile_tunable(
        self, owner: Any, binding: TunableBinding, seen: Set[str]
    ) -> Optional[TunableTask]:
        if binding.key in seen:
            LOGGER.warning(
                "Duplicate tunable key '%s' in %s; keeping the first declaration",
                binding.key,
                self._table,
            )
            return None

        try:
            field_value = getattr(owner, binding.attribute)
        except Exception:
            LOGGER.warning(
                "Unable to read tunable field '%s' of %s",
                binding.attribute,
                self._table,
                exc_info=True,
            )
            return None

        if binding.kind is None:
            kind = kind_from_value(field_value)
        else:
            kind = resolve_kind(binding.kind)
        if kind not in TUNABLE_KINDS:
            LOGGER.warning(
                "Tunable '%s' in %s has unsupported kind %r; skipping",
                binding.key,
                self._table,
                binding.kind if binding.kind is not None else type(field_value).__name__,
            )
            return None

        try:
            return self._reconcile(owner, binding, kind, field_value, seen)
        except Exception:
            LOGGER.warning(
                "Failed to register tunable '%s' in %s",
                binding.key,
                self._table,
                exc_info=True,
            )
            return None

    def _reconcile(
        self,
        owner: Any,
        binding: TunableBinding,
        kind: ValueKind,
        field_value: Any,
        seen: Set[str],
    ) -> TunableTask:
        initial = coerce_value(kind, field_value)
        exists = self._channels.exists(self._table, binding.key)
        publisher = self._channels.publisher(self._table, binding.key, kind)
        subscriber = self._channels.subscriber(self._table, binding.key, kind, initial)

        value, seed_bus = reconcile(exists, initial, subscriber.get() if exists else None)
        if seed_bus:
            try:
                publisher.set(value)
            except Exception:
                LOGGER.warning(
                    "Unable to seed tunable %s/%s; it will still follow bus updates",
                    self._table,
                    binding.key,
                    exc_info=True,
                )
        else:
            LOGGER.debug(
                "Tunable %s/%s restored from bus: %r", self._table, binding.key, value
            )
            setattr(owner, binding.attribute, value)

        seen.add(binding.key)
        return TunableTask(
            binding.key,
            owner,
            binding.attribute,
            subscriber,
            kind=kind,
            last_seen=subscriber.get(),
        )
