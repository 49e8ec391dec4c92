"""Tagged continuations: the only values the trampoline knows how to resume."""
import abc
from typing import Any, List, Sequence, Tuple, Type


class BounceError(Exception):
    """Base class for errors raised by the runtime."""
    pass


class InvalidContinuation(BounceError, TypeError):
    """Raised when something that isn't a continuation is applied as one; indicates a bug in client code."""
    def __init__(self, obj: object) -> None:
        super(InvalidContinuation, self).__init__(
            "not a continuation: {!r} (of type '{}')".format(obj, type(obj).__name__))
        self.obj = obj


class Continuation(abc.ABC):
    """
    Represents "the rest of the computation"; subclassed by every kind of resumption step.

    A continuation is a descriptor: the subclass names the step, and `data` holds the captured arguments.  Keeping the
    step code in a static `run` method (rather than in a closure) makes continuations picklable and encodable by name.
    Continuations never change after construction.
    """
    __slots__ = ("data",)

    # True if applying this continuation enters a new call (see `Call`); the driver ends a step there.
    is_call = False

    def __init__(self, *args) -> None:
        """Takes as arguments the values of the captured variables (except the value being passed in)."""
        object.__setattr__(self, "data", args)

    def __setattr__(self, name, value):
        raise AttributeError("'{}' is immutable".format(type(self).__name__))

    def __delattr__(self, name):
        raise AttributeError("'{}' is immutable".format(type(self).__name__))

    def __reduce__(self):
        frames, tail = unchain(self)
        if not frames:
            return type(self), self.data
        # Pickled flat, so that a chain of any length pickles without recursing into each captured continuation.
        return rechain, (frames, tail)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.data == other.data

    __hash__ = None  # type: ignore  # Captured data may be unhashable.

    def __repr__(self) -> str:
        return "{}({})".format(type(self).__name__, ", ".join(repr(d) for d in self.data))

    def describe(self) -> str:
        """Returns a short, single-line label for traces (doesn't recurse into captured continuations)."""
        return type(self).__name__

    @staticmethod
    @abc.abstractmethod
    def run(value, *data):
        """Runs the step on the incoming value and returns a step result; implemented by subclass."""
        pass


class FunctionContinuation(Continuation):
    """Wraps an arbitrary single-argument callable.  Works in-process only: closures can't be persisted."""
    __slots__ = ()

    def __init__(self, fn, is_call: bool = False) -> None:
        super(FunctionContinuation, self).__init__(fn, is_call)

    @property
    def is_call(self) -> bool:  # type: ignore
        return self.data[1]

    @staticmethod
    def run(value, *data):
        fn, _ = data
        return fn(value)

    def describe(self) -> str:
        return "fn {}".format(getattr(self.data[0], "__qualname__", "?"))


class Call(Continuation):
    """
    Enters a CPS function: `Call(fn, *args)` invokes `fn(*args)`, ignoring the value passed in.

    By convention the last of `args` is the continuation that receives the call's result.  If `fn` is a `@cps`
    function, its undecorated body is entered.
    """
    __slots__ = ()
    is_call = True

    @staticmethod
    def run(value, *data):
        fn, *args = data
        return getattr(fn, "cps_body", fn)(*args)

    def describe(self) -> str:
        fn, *args = self.data
        name = getattr(fn, "__qualname__", repr(fn))
        return "{}({})".format(name, ", ".join(_short_repr(a) for a in args[:-1]))


def _short_repr(obj: object, limit: int = 40) -> str:
    s = repr(obj)
    return s if len(s) <= limit else s[:limit - 3] + "..."


Frame = Tuple[Type[Continuation], Tuple[Any, ...]]


def unchain(k: Continuation) -> Tuple[List[Frame], Continuation]:
    """
    Splits a chain of continuations into frames, outermost first, and the continuation the chain ends in.

    A continuation whose last captured value is another continuation (a calling function's return frame, say) is a
    link in the chain; its frame is its class plus the rest of its data.  Runs in a loop, so the chain can be longer
    than the recursion limit.
    """
    frames: List[Frame] = []
    while k.data and isinstance(k.data[-1], Continuation):
        frames.append((type(k), k.data[:-1]))
        k = k.data[-1]
    return frames, k


def rechain(frames: Sequence[Frame], tail: Continuation) -> Continuation:
    """Inverse of `unchain`."""
    k = tail
    for cls, head in reversed(frames):
        k = cls(*head, k)
    return k


def make_continuation(fn, *, is_call: bool = False) -> Continuation:
    """
    Wraps `fn`, which takes a value and returns a step result, in a continuation.  Never fails.

    :param is_call: if True, applying the continuation counts as entering a new call (so the driver ends a step there).
    """
    return FunctionContinuation(fn, is_call)


def is_continuation(obj: Any) -> bool:
    """Returns True iff `obj` is a continuation.  A plain function is not one."""
    return isinstance(obj, Continuation)


def apply_continuation(k: Continuation, value):
    """
    Runs continuation `k` on `value` and returns the resulting step result verbatim.

    This is the only place where continuation code gets invoked.  Raises InvalidContinuation if `k` isn't a
    continuation.
    """
    if not is_continuation(k):
        raise InvalidContinuation(k)
    return k.run(value, *k.data)
