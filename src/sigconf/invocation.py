import logging
import threading
import types
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from sigconf.classifier import describe_receiver, type_name_of

logger = logging.getLogger(__name__)


class Block:
    """Marks the callable a method receives as its block.

    Place it where the method expects the callback, positionally or as a keyword:
    `harness.assert_send_type(sig, builtins, "sorted", [3, 1], key=Block(abs))`.
    """

    def __init__(self, fn: Callable):
        if not callable(fn):
            raise TypeError(f"Block expects a callable, got {type(fn).__name__}")
        self.fn = fn

    def __repr__(self):
        return f"Block({self.fn!r})"


@dataclass
class BlockCall:
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]
    result: Any = None
    error: Optional[BaseException] = None
    thread: str = ""

    @property
    def returned(self) -> bool:
        return self.error is None


class TracedBlock:
    """Callable wrapper that records every call; safe to call from any thread."""

    def __init__(self, fn: Callable):
        self.fn = fn
        self._calls: List[BlockCall] = []
        self._lock = threading.Lock()

    def __call__(self, *args, **kwargs):
        thread = threading.current_thread().name
        try:
            result = self.fn(*args, **kwargs)
        except BaseException as error:
            self._append(BlockCall(args, kwargs, error=error, thread=thread))
            raise
        self._append(BlockCall(args, kwargs, result=result, thread=thread))
        return result

    def _append(self, call: BlockCall):
        with self._lock:
            self._calls.append(call)

    @property
    def calls(self) -> List[BlockCall]:
        with self._lock:
            return list(self._calls)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)


@dataclass
class Invocation:
    receiver: Any
    method: str
    args: Tuple[Any, ...] = ()            # Without the block
    kwargs: Dict[str, Any] = field(default_factory=dict)
    block: Optional[TracedBlock] = None
    call_args: Tuple[Any, ...] = ()       # As passed to the method, block included
    call_kwargs: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[BaseException] = None
    performed: bool = False

    @classmethod
    def prepare(cls, receiver: Any, method: str, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> "Invocation":
        block = None
        plain_args, call_args = [], []
        for arg in args:
            if isinstance(arg, Block):
                block = cls._trace(block, arg)
                call_args.append(block)
            else:
                plain_args.append(arg)
                call_args.append(arg)

        plain_kwargs, call_kwargs = {}, {}
        for name, value in kwargs.items():
            if isinstance(value, Block):
                block = cls._trace(block, value)
                call_kwargs[name] = block
            else:
                plain_kwargs[name] = value
                call_kwargs[name] = value

        return cls(receiver, method, tuple(plain_args), plain_kwargs, block,
                   tuple(call_args), call_kwargs)

    @staticmethod
    def _trace(existing: Optional[TracedBlock], marker: Block) -> TracedBlock:
        if existing is not None:
            raise ValueError("At most one Block may be passed per call")
        return TracedBlock(marker.fn)

    @property
    def raised(self) -> bool:
        return self.error is not None

    @property
    def block_given(self) -> bool:
        return self.block is not None

    @property
    def block_calls(self) -> List[BlockCall]:
        return self.block.calls if self.block is not None else []

    @property
    def receiver_type(self) -> str:
        return describe_receiver(self.receiver)

    @property
    def label(self) -> str:
        if isinstance(self.receiver, type):
            return f"{type_name_of(self.receiver)}.{self.method}"
        if isinstance(self.receiver, types.ModuleType):
            return f"{self.receiver.__name__}.{self.method}"
        return f"{self.receiver_type}#{self.method}"

    def perform(self) -> "Invocation":
        """Make the real call exactly once, capturing its result or error."""
        if self.performed:
            raise RuntimeError(f"{self.label} has already been called")
        target = getattr(self.receiver, self.method)
        self.performed = True
        try:
            self.result = target(*self.call_args, **self.call_kwargs)
        except BaseException as error:
            logger.debug("`%s` raised %s: %s", self.label, type(error).__name__, error)
            self.error = error
        return self
