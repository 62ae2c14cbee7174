import contextlib
import json
import logging
import shutil
import time
import numpy as np
import pandas as pd
from pathlib import Path


class NumpyEncoder(json.JSONEncoder):
    """Handles serialization of NumPy types to JSON."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, (np.ndarray,)):
            return obj.tolist()
        return json.JSONEncoder.default(self, obj)


@contextlib.contextmanager
def file_lock(lock_file: Path, timeout: int = 60, poll_interval: float = 0.1):
    """
    A cross-platform file locking mechanism using a directory (atomic on most OS).
    Prevents interleaved appends to the progress file.
    """
    lock_dir = lock_file.parent / (lock_file.name + ".lock")
    start_time = time.time()

    while True:
        try:
            lock_dir.mkdir(exist_ok=False)
            break
        except FileExistsError:
            if time.time() - start_time > timeout:
                logging.warning(f"Lock timeout expired for {lock_file}. Forcing release.")
                shutil.rmtree(lock_dir, ignore_errors=True)
            time.sleep(poll_interval)

    try:
        yield
    finally:
        shutil.rmtree(lock_dir, ignore_errors=True)


def append_jsonl(path: Path, entries) -> None:
    """Append entries to a JSON-lines file under a lock."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with file_lock(path):
        with open(path, 'a', encoding='utf-8') as f:
            for entry in entries:
                f.write(json.dumps(entry, cls=NumpyEncoder) + "\n")


def write_json(path: Path, payload) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, cls=NumpyEncoder)
    return path


def save_dataframe(df: pd.DataFrame, path: Path, *, index: bool = False) -> Path:
    """
    Save a DataFrame to Parquet for fast I/O.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=index)
    return path


def read_dataframe(path: Path) -> pd.DataFrame:
    """
    Load a DataFrame from Parquet/CSV based on file extension.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".csv":
        return pd.read_csv(path)

    raise ValueError(f"Unsupported file extension for reading: {suffix}")
