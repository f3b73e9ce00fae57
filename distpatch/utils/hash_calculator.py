"""
Canonical content hashing for snapshots and artifacts.
"""
import hashlib
import json
from pathlib import Path
from typing import Any, Union

CHUNK_SIZE = 1024 * 1024


class HashCalculator:
    """Calculate sha256 digests for files, bytes and canonical documents"""

    @staticmethod
    def hash_bytes(content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()

    @staticmethod
    def git_blob_id(content: bytes) -> str:
        """Object id git assigns to a blob with this content (sha1 repositories)"""
        header = f"blob {len(content)}\0".encode('utf-8')
        return hashlib.sha1(header + content).hexdigest()

    @staticmethod
    def hash_file(file_path: Union[str, Path]) -> str:
        """Hash a file's raw content without loading it whole"""
        hash_obj = hashlib.sha256()
        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
                hash_obj.update(chunk)
        return hash_obj.hexdigest()

    @staticmethod
    def hash_document(document: Any) -> str:
        """
        Hash a JSON-compatible document independent of key order and formatting.

        Args:
            document: Dict/list structure

        Returns:
            SHA256 hash hex string
        """
        canonical_json = json.dumps(
            document,
            sort_keys=True,
            separators=(',', ':'),
            default=str
        )
        return hashlib.sha256(canonical_json.encode('utf-8')).hexdigest()
