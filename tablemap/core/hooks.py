"""
Lifecycle hook runner.

A hook is one callable or a sequence of callables receiving the record. Sync
and async callables are both accepted; a sequence runs strictly in order, each
callable finishing before the next starts. Raising aborts the rest of the
sequence and propagates to the caller.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Iterable, MutableMapping, Sequence, Tuple

from tablemap.domain.models import HOOK_NAMES, ModelDescriptor
from tablemap.errors import ConfigurationError


def normalize_hooks(hooks: Any) -> dict:
    """Validate hook names and turn every entry into a tuple of callables."""
    normalized: dict = {}
    for name, value in (hooks or {}).items():
        if name not in HOOK_NAMES:
            raise ConfigurationError(
                f"Unknown hook '{name}'. Available: {', '.join(HOOK_NAMES)}"
            )
        callbacks: Tuple[Callable[..., Any], ...]
        if callable(value):
            callbacks = (value,)
        elif isinstance(value, Sequence) and not isinstance(value, str):
            for fn in value:
                if not callable(fn):
                    raise ConfigurationError(f"Hook '{name}' contains a non-callable entry: {fn!r}")
            callbacks = tuple(value)
        else:
            raise ConfigurationError(f"Hook '{name}' must be a callable or a list of callables")
        normalized[name] = callbacks
    return normalized


async def run(
    descriptor: ModelDescriptor, record: MutableMapping[str, Any], hook_name: str
) -> MutableMapping[str, Any]:
    for callback in descriptor.hooks.get(hook_name, ()):
        result = callback(record)
        if inspect.isawaitable(result):
            await result
    return record


async def run_many(
    descriptor: ModelDescriptor, record: MutableMapping[str, Any], hook_names: Iterable[str]
) -> MutableMapping[str, Any]:
    for hook_name in hook_names:
        await run(descriptor, record, hook_name)
    return record


__all__ = ["normalize_hooks", "run", "run_many"]
