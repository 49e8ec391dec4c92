"""Exports checkpoint managers, which are responsible for loading and storing pending computations to/from storage."""
from abc import ABC, abstractmethod
import io
import logging
import os
from pathlib import Path
import pickle
from typing import Optional, BinaryIO, cast
import uuid

from .consts import CheckpointID, RunID, StepNo
from .logging import log, log_duration
from .protocol import Pending, SerializationError, dumps, loads

NULL_CHK_ID = CheckpointID("")  # Signifies "no checkpoint".

FORMATS = ("pickle", "json")


class CheckpointManager(ABC):
    """
    Abstract base class for checkpoint managers.

    A checkpoint is a serialized `Pending` result.  With the "pickle" format (the default), continuations must be
    picklable; with the "json" format, they must be encodable by `protocol.encode`.  Either way, closures made with
    `make_continuation` can't be saved.
    """
    logger = logging.getLogger(__name__)

    def __init__(self, fmt: str = "pickle") -> None:
        if fmt not in FORMATS:
            raise ValueError("Unknown checkpoint format: {}".format(fmt))
        self.fmt = fmt

    @abstractmethod
    def load(self, chk_id: CheckpointID) -> Optional[Pending]:
        """If a checkpoint with the specified ID exists, loads and returns it; otherwise, returns None."""
        pass

    def _load_from_path(self, path: Path) -> Pending:
        """Loads and returns a checkpoint from a local disk path.  Raises `FileNotFoundError` if path doesn't exist."""
        with path.open("rb") as f:
            self.logger.info("Loading checkpoint from: %s.", path)
            return self._deserialize(cast(BinaryIO, f))

    @abstractmethod
    def save(self, pending: Pending, run_id: RunID, step: StepNo) -> CheckpointID:
        """
        Persists a checkpoint.
        :param pending: the pending computation to save.
        :param run_id: ID of the run that the checkpoint belongs to.
        :param step: the number of steps taken so far, unique within a run.
        :returns new checkpoint ID.
        """
        pass

    def serialize(self, pending: Pending, f: BinaryIO) -> None:
        """Serializes a checkpoint to a file object.  Raises SerializationError if it can't be serialized."""
        if not isinstance(pending, Pending):
            raise SerializationError("only pending computations can be checkpointed, not: {!r}".format(pending))

        if self.fmt == "json":
            f.write(dumps(pending).encode("utf-8"))
            return

        try:
            data = pickle.dumps(pending)
        except (pickle.PicklingError, AttributeError, TypeError, RecursionError) as e:
            raise SerializationError("can't pickle checkpoint: {}".format(e)) from e
        f.write(data)

    def _deserialize(self, f: BinaryIO) -> Pending:
        """Deserializes a checkpoint from a file object."""
        if self.fmt == "json":
            result = loads(f.read())
        else:
            try:
                result = pickle.load(f)
            except (pickle.UnpicklingError, AttributeError, EOFError, ImportError, IndexError, KeyError, TypeError,
                    ValueError, RecursionError) as e:
                raise SerializationError("can't unpickle checkpoint: {}".format(e)) from e

        if not isinstance(result, Pending):
            raise SerializationError("checkpoint doesn't hold a pending computation: {!r}".format(result))
        return result

    @staticmethod
    def _make_chk_id(run_id: RunID, step: StepNo) -> CheckpointID:
        """Helper function that constructs a unique checkpoint ID."""
        # Incorporate a random string into the checkpoint ID to avoid duplicate file names.
        return CheckpointID("r{}_{}_{}".format(run_id, step, uuid.uuid4()))


class LocalCheckpointManager(CheckpointManager):
    """Checkpoint manager that keeps one file per checkpoint in a local directory."""

    def __init__(self, checkpoint_dir: Path, fmt: str = "pickle") -> None:
        super(LocalCheckpointManager, self).__init__(fmt)
        self.checkpoint_dir = Path(checkpoint_dir)

    def load(self, chk_id: CheckpointID) -> Optional[Pending]:
        if chk_id == NULL_CHK_ID:
            return None

        # If a checkpoint ID is provided, the checkpoint must exist.
        path = self.checkpoint_dir / chk_id
        return self._load_from_path(path)

    def save(self, pending: Pending, run_id: RunID, step: StepNo) -> CheckpointID:
        # Serialize first so that a failure doesn't leave an empty checkpoint file behind.
        buf = io.BytesIO()
        self.serialize(pending, buf)

        chk_id = self._make_chk_id(run_id, step)
        path = self.checkpoint_dir / chk_id
        with path.open("xb") as f:
            f.write(buf.getvalue())
            f.flush()
            os.fsync(f.fileno())

        self.logger.info("Checkpoint saved to: %s.", path)
        return chk_id


class S3CheckpointManager(CheckpointManager):
    """Checkpoint manager that stores checkpoints in an S3 bucket."""

    def __init__(self, bucket_name: str, fmt: str = "pickle", s3_client=None) -> None:
        """Initializes a checkpoint manager with the name of the bucket to store checkpoints in."""
        super(S3CheckpointManager, self).__init__(fmt)
        if s3_client is None:
            import boto3
            s3_client = boto3.client("s3")

        self.bucket_name = bucket_name
        self.s3_client = s3_client

    def load(self, chk_id: CheckpointID) -> Optional[Pending]:
        if chk_id == NULL_CHK_ID:
            return None

        f = io.BytesIO()
        self.s3_client.download_fileobj(self.bucket_name, chk_id, f)
        f.seek(0)  # Rewind to beginning.
        return self._deserialize(f)

    def save(self, pending: Pending, run_id: RunID, step: StepNo) -> CheckpointID:
        f = io.BytesIO()
        self.serialize(pending, f)
        size = f.tell()
        f.seek(0)

        chk_id = self._make_chk_id(run_id, step)
        with log_duration(run_id, step, "checkpoint s3"):
            self.s3_client.upload_fileobj(f, self.bucket_name, chk_id)

        log(run_id, step, f"Checkpoint saved to: {self.bucket_name}/{chk_id} (size={size}).")
        return chk_id
