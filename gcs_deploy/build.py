"""
Minimal build-tool boundary the deploy plugin plugs into.

A build tool (or a thin adapter around one) creates a ``Compiler`` with its
output location, lets plugins ``apply`` themselves, and calls
``await compiler.hooks.done.call(Stats(compilation))`` when the build has
finished. Plugins report problems by appending to ``compilation.errors``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from gcs_deploy.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Compilation:
    """
    Result of one build.

    Attributes:
        output_path: Directory the build wrote its assets to
        assets: Emitted asset name -> content (content is not used for upload)
        errors: Errors collected during the build and its hooks
    """

    output_path: str
    assets: Dict[str, Any] = field(default_factory=dict)
    errors: List[Exception] = field(default_factory=list)


@dataclass
class Stats:
    compilation: Compilation


class AsyncSeriesHook:
    """Async callbacks run one after another, in tap order."""

    def __init__(self) -> None:
        self.taps: List[Tuple[str, Callable[..., Awaitable[Any]]]] = []

    def tap(self, name: str, callback: Callable[..., Awaitable[Any]]) -> None:
        self.taps.append((name, callback))

    async def call(self, *args: Any) -> None:
        for name, callback in self.taps:
            logger.debug(f"Running hook callback: {name}")
            await callback(*args)


@dataclass
class CompilerHooks:
    done: AsyncSeriesHook = field(default_factory=AsyncSeriesHook)


class Compiler:
    """
    Build-tool handle passed to ``plugin.apply``.

    Args:
        output_path: Build output directory
        context: Project root, used when no output directory is known
    """

    def __init__(self, output_path: Optional[str] = None, context: Optional[str] = None) -> None:
        self.output_path = output_path
        self.context = context
        self.hooks = CompilerHooks()

    async def run_done(self, compilation: Compilation) -> Compilation:
        """Signal build completion to every tapped plugin."""
        await self.hooks.done.call(Stats(compilation))
        return compilation
