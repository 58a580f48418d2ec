from __future__ import annotations

from auto_battler.storage.repos.blob_repo import BlobRepo

__all__ = [
    "BlobRepo",
]
