"""Small helpers shared by the API layer and ingestion"""

import hashlib
import random
import string
import time
from pathlib import Path
from typing import Union

_BASE36 = string.digits + string.ascii_lowercase


def calculate_file_hash(file_path_or_content: Union[str, Path, bytes]) -> str:
    """
    SHA256 hex digest of an uploaded file.

    Used to skip re-ingesting the same file twice for one bot.

    Args:
        file_path_or_content: File path (str/Path) or file content (bytes)

    Returns:
        64-character lowercase hex string
    """
    if isinstance(file_path_or_content, bytes):
        content = file_path_or_content
    else:
        with open(Path(file_path_or_content), "rb") as f:
            content = f.read()

    return hashlib.sha256(content).hexdigest()


def generate_session_token() -> str:
    """
    New chat session token: ``session_<epoch-ms>_<9 base36 chars>``.

    Example:
        >>> generate_session_token()
        'session_1760871234567_k3j9x0a2b'
    """
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"
