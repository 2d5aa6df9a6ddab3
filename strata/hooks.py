"""
Hook runner — ordered lifecycle callbacks, one at a time.

Usage:
    runner = HookRunner([normalize_email, audit if config.audit else None])
    await runner.run(row)                 # live data, hooks may adjust it
    await runner.run(row, isolate=True)   # hooks see one deep copy

Hooks are plain callables taking the affected data. A hook may return
nothing or an awaitable; awaitables are awaited before the next hook
starts. The first failure stops the sequence and is raised as
HookExecutionError with the original exception chained.
"""

import copy
import inspect
from typing import Any, Callable, Iterable, Optional

from strata.errors import HookExecutionError


def _hook_name(hook) -> str:
    return getattr(hook, '__qualname__', None) or hook.__class__.__name__


class HookRunner:
    """Sequential hook executor.

    - Filters None hooks (conditional registration)
    - Awaits each hook before starting the next
    - Stops at the first failure
    """

    def __init__(self, hooks: Optional[Iterable[Callable]] = None):
        self.hooks = [h for h in (hooks or []) if h is not None]

    async def run(self, data: Any, isolate: bool = False) -> Any:
        """Run every hook on data. Returns what the hooks received.

        isolate=True deep-copies data once; the whole list shares that copy.
        """
        if not self.hooks:
            return data
        target = copy.deepcopy(data) if isolate else data
        for hook in self.hooks:
            try:
                result = hook(target)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                raise HookExecutionError(str(e), hook=hook) from e
        return target

    def __len__(self):
        return len(self.hooks)

    def __repr__(self):
        names = [_hook_name(h) for h in self.hooks]
        return f"HookRunner({' -> '.join(names)})"


async def run_hooks(hooks: Optional[Iterable[Callable]], data: Any,
                    isolate: bool = False) -> Any:
    """Run hooks in order. Empty or None is a no-op."""
    return await HookRunner(hooks).run(data, isolate=isolate)
