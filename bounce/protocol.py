"""
Step results, the calling convention built on them, and their JSON encoding.

Every CPS function returns a step result: `Done(value)` if the computation is over, or `Pending(k, value)` if the
trampoline should go on by applying continuation `k` to `value`.
"""
import functools
import importlib
import json
from typing import Any, Dict, NamedTuple, Tuple, Union

from .continuation import BounceError, Call, Continuation, FunctionContinuation, rechain, unchain


class Done(NamedTuple):
    """The final answer; no work remains."""
    value: Any


class Pending(NamedTuple):
    """More work remains: the driver will apply `continuation` to `value`."""
    continuation: Continuation
    value: Any

    @property
    def is_call(self) -> bool:
        """True if resuming this result enters a new call."""
        return bool(getattr(self.continuation, "is_call", False))


StepResult = Union[Done, Pending]


def is_done(result: object) -> bool:
    return isinstance(result, Done)


def is_pending(result: object) -> bool:
    return isinstance(result, Pending)


class Identity(Continuation):
    """The continuation of a top-level call: ends the computation with whatever value it receives."""
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        return Done(value)


identity = Identity()


def give(k: Continuation, value) -> Pending:
    """Hands `value` to continuation `k` by way of the driver; this is how a CPS function "returns"."""
    return Pending(k, value)


def call(fn, *args) -> Pending:
    """
    Describes the call `fn(*args)` without making it; the driver makes the call.

    The last of `args` should be the continuation that will receive the result.  `fn` must be visible at the module
    level if the computation is to be persisted.
    """
    return Pending(Call(fn, *args), None)


class CPSFunction(object):
    """
    A function written in continuation-passing style (see `cps`).

    Calling it doesn't run its body: it returns a `Pending` result that makes the driver enter the body.  This way,
    every call (including the top-level one) is a step the trampoline can observe, budget and checkpoint.
    """
    def __init__(self, fn) -> None:
        functools.update_wrapper(self, fn)
        self.cps_body = fn

    def __call__(self, *args) -> Pending:
        return call(self, *args)

    def __reduce__(self):
        return resolve_name, (qualified_name(self),)

    def __repr__(self) -> str:
        return "<cps function {}>".format(self.__qualname__)  # type: ignore


def cps(fn) -> CPSFunction:
    """
    Decorator for CPS functions.

    The decorated function must take its continuation as the last argument, hand results in base cases to the
    continuation using `give`, and return (rather than wait on) any recursive call.  Example:

        @cps
        def fact_cps(n, k):
            if n <= 1:
                return give(k, 1)
            return fact_cps(n - 1, Multiply(n, k))
    """
    return CPSFunction(fn)


class SerializationError(BounceError):
    """Raised when a step result can't be encoded or decoded."""
    pass


def qualified_name(obj: object) -> str:
    """Returns the "module:qualname" name of a function or class.  Raises SerializationError if it can't be found."""
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None)
    if module is None or qualname is None or "<" in qualname:
        raise SerializationError("{!r} is not visible at the module level".format(obj))

    name = "{}:{}".format(module, qualname)
    try:
        resolved = resolve_name(name)
    except SerializationError:
        resolved = None
    if resolved is not obj:
        raise SerializationError("{!r} can't be found under the name '{}'".format(obj, name))
    return name


def resolve_name(name: str) -> Any:
    """Inverse of `qualified_name`: imports the module and looks up the object."""
    if not isinstance(name, str):
        raise SerializationError("not a name: {!r}".format(name))

    module_name, _, qualname = name.partition(":")
    try:
        obj = importlib.import_module(module_name)
        for attr in qualname.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError, ValueError) as e:
        raise SerializationError("can't resolve '{}': {}".format(name, e)) from e
    return obj


def encode(result: StepResult) -> Dict[str, Any]:
    """
    Encodes a step result as a JSON-compatible document.

    Continuations are encoded as their step name plus their captured data, and functions by name.  A chain of
    continuations (see `unchain`) is encoded as a flat "chain" list, so its length isn't bounded by the recursion limit.
    Closures (including continuations made with `make_continuation`) can't be encoded and raise SerializationError.
    """
    try:
        if isinstance(result, Done):
            return {"done": _encode_value(result.value)}
        elif isinstance(result, Pending):
            return {"pending": {"continuation": _encode_value(result.continuation),
                                "value": _encode_value(result.value)}}
    except RecursionError as e:
        raise SerializationError("value nested too deeply to encode") from e

    raise SerializationError("not a step result: {!r}".format(result))


def decode(doc: Dict[str, Any]) -> StepResult:
    """Decodes a document produced by `encode`."""
    if not isinstance(doc, dict):
        raise SerializationError("malformed step result: {!r}".format(doc))

    try:
        if "done" in doc:
            return Done(_decode_value(doc["done"]))
        elif "pending" not in doc:
            raise SerializationError("malformed step result: {!r}".format(doc))

        body = doc["pending"]
        k = _decode_value(body["continuation"])
        value = _decode_value(body["value"])
    except RecursionError as e:
        raise SerializationError("value nested too deeply to decode") from e
    except (KeyError, TypeError, AttributeError) as e:
        raise SerializationError("malformed step result: {!r}".format(doc)) from e

    if not isinstance(k, Continuation):
        raise SerializationError("pending result without a continuation: {!r}".format(body))
    return Pending(k, value)


def dumps(result: StepResult) -> str:
    return json.dumps(encode(result))


def loads(s: Union[str, bytes]) -> StepResult:
    try:
        doc = json.loads(s)
    except ValueError as e:
        raise SerializationError("invalid JSON: {}".format(e)) from e
    return decode(doc)


def _encode_value(obj: Any) -> Any:
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    elif isinstance(obj, list):
        return [_encode_value(o) for o in obj]
    elif isinstance(obj, tuple):
        return {"tuple": [_encode_value(o) for o in obj]}
    elif isinstance(obj, range):
        return {"range": [obj.start, obj.stop, obj.step]}
    elif isinstance(obj, dict):
        if not all(isinstance(key, str) for key in obj):
            raise SerializationError("only dicts with string keys can be encoded")
        return {"dict": {key: _encode_value(val) for key, val in obj.items()}}
    elif isinstance(obj, FunctionContinuation):
        raise SerializationError("closure continuations can't be encoded; use a Continuation subclass instead")
    elif isinstance(obj, Continuation):
        frames, tail = unchain(obj)
        if not frames:
            return _encode_step(type(tail), tail.data)
        return {"chain": [_encode_step(cls, head) for cls, head in frames] + [_encode_step(type(tail), tail.data)]}
    elif callable(obj):
        return {"fn": qualified_name(obj)}

    raise SerializationError("can't encode object of type '{}'".format(type(obj).__name__))


def _encode_step(cls: type, data: tuple) -> Dict[str, Any]:
    if cls is FunctionContinuation:
        raise SerializationError("closure continuations can't be encoded; use a Continuation subclass instead")
    return {"step": qualified_name(cls), "data": [_encode_value(d) for d in data]}


def _decode_step(obj: Dict[str, Any]) -> Tuple[type, tuple]:
    cls = resolve_name(obj["step"])
    if not (isinstance(cls, type) and issubclass(cls, Continuation)) or cls is FunctionContinuation:
        raise SerializationError("'{}' is not a continuation class".format(obj["step"]))
    return cls, tuple(_decode_value(d) for d in obj["data"])


def _decode_value(obj: Any) -> Any:
    if isinstance(obj, list):
        return [_decode_value(o) for o in obj]
    elif not isinstance(obj, dict):
        return obj

    if "tuple" in obj:
        return tuple(_decode_value(o) for o in obj["tuple"])
    elif "range" in obj:
        return range(*obj["range"])
    elif "dict" in obj:
        return {key: _decode_value(val) for key, val in obj["dict"].items()}
    elif "step" in obj:
        cls, data = _decode_step(obj)
        return cls(*data)
    elif "chain" in obj:
        # The last frame keeps all its data; each one before it gets the continuation built so far appended.
        if not isinstance(obj["chain"], list) or not obj["chain"]:
            raise SerializationError("malformed continuation chain: {!r}".format(obj))
        *frames, tail = (_decode_step(frame) for frame in obj["chain"])
        tail_cls, tail_data = tail
        return rechain(frames, tail_cls(*tail_data))
    elif "fn" in obj:
        return resolve_name(obj["fn"])

    raise SerializationError("malformed value: {!r}".format(obj))
