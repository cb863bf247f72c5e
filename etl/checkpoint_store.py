"""Checkpoint Store for trained forecast models.

Persists opaque checkpoint blobs produced by ``ForecastModel.checkpoint()``.

- Atomic persistence: temp -> replace pattern for consistency
- Integrity: SHA-256 digest recorded per destination and re-checked on read
- Registry: ``checkpoint_metadata.json`` lists every write
"""
import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CheckpointStore:
    """Writes and reads model checkpoint blobs under a root directory."""

    def __init__(self, root: PathLike = "artifacts"):
        """Initialize checkpoint store.

        Args:
            root: Directory against which relative destinations are resolved
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.metadata_file = self.root / "checkpoint_metadata.json"

    def _resolve(self, destination: PathLike) -> Path:
        path = Path(destination)
        return path if path.is_absolute() else self.root / path

    def _load_metadata(self) -> Dict[str, Any]:
        if not self.metadata_file.exists():
            return {"checkpoints": {}}
        with open(self.metadata_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save_metadata(self, metadata: Dict[str, Any]) -> None:
        """Save metadata atomically."""
        temp_path = self.metadata_file.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2, sort_keys=True)
        temp_path.replace(self.metadata_file)

    @staticmethod
    def _digest(blob: bytes) -> str:
        return hashlib.sha256(blob).hexdigest()

    def write(self, blob: bytes, destination: PathLike) -> Path:
        """Persist ``blob`` at ``destination``.

        Args:
            blob: Opaque checkpoint bytes
            destination: File path, absolute or relative to the store root

        Returns:
            Resolved path of the written checkpoint
        """
        path = self._resolve(destination)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_name(path.name + ".tmp")
        with open(temp_path, "wb") as f:
            f.write(blob)
        temp_path.replace(path)

        digest = self._digest(blob)
        meta = self._load_metadata()
        meta["checkpoints"][str(path)] = {
            "sha256": digest,
            "size_bytes": len(blob),
            "written_at": datetime.now().isoformat(),
        }
        meta["last_updated"] = datetime.now().isoformat()
        self._save_metadata(meta)

        logger.info("Checkpoint saved: %s (%s bytes, sha256=%s)", path, len(blob), digest[:16])
        return path

    def read(self, destination: PathLike) -> bytes:
        """Load the blob stored at ``destination``.

        Raises:
            FileNotFoundError: If nothing was written there
        """
        path = self._resolve(destination)
        if not path.exists():
            raise FileNotFoundError(f"Checkpoint not found: {path}")

        blob = path.read_bytes()
        recorded = self._load_metadata()["checkpoints"].get(str(path))
        if recorded and recorded.get("sha256") != self._digest(blob):
            logger.warning(
                "Checkpoint digest mismatch for %s: expected %s", path, recorded.get("sha256")
            )

        logger.info("Checkpoint loaded: %s (%s bytes)", path, len(blob))
        return blob

    def exists(self, destination: PathLike) -> bool:
        return self._resolve(destination).exists()

    def list_checkpoints(self) -> List[Dict[str, Any]]:
        """List recorded checkpoints, newest first."""
        checkpoints = self._load_metadata().get("checkpoints", {})
        entries = [{"path": path, **info} for path, info in checkpoints.items()]
        return sorted(entries, key=lambda x: x["written_at"], reverse=True)
