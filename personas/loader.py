# personas/loader.py
import json
from pathlib import Path
from typing import Optional, Protocol

from core.config import Config
from core.logger import get_logger

log = get_logger("Profiles")


class CreatorProfileStore(Protocol):
    def promotion_url(self, creator_id: str) -> Optional[str]:
        ...


def load_profile(slug: str, profiles_dir: Optional[Path] = None) -> dict:
    base = Path(profiles_dir or Config.PROFILES_DIR)
    pfile = base / slug / "profile.json"
    if not pfile.exists():
        raise FileNotFoundError(f"Creator profile '{slug}' not found at {pfile}")
    with pfile.open("r", encoding="utf-8") as f:
        data = json.load(f)
    data["_profile_file"] = str(pfile.resolve())
    return data

def validate_profile(data: dict) -> bool:
    required = ["id", "display_name"]
    missing = [k for k in required if k not in data]
    if missing:
        raise ValueError(f"profile.json missing required fields: {missing}")
    url = data.get("promotion_url")
    if url is not None and not str(url).startswith(("http://", "https://")):
        raise ValueError(f"promotion_url must be an http(s) link, got {url!r}")
    return True


class JsonProfileStore:
    """Reads ``<profiles_dir>/<creator_id>/profile.json`` files."""

    def __init__(self, profiles_dir: Optional[Path] = None):
        self.profiles_dir = Path(profiles_dir or Config.PROFILES_DIR)

    def promotion_url(self, creator_id: str) -> Optional[str]:
        try:
            data = load_profile(creator_id, self.profiles_dir)
        except FileNotFoundError:
            log.warning(f"No profile for creator '{creator_id}' under {self.profiles_dir}")
            return None
        url = (data.get("promotion_url") or "").strip()
        return url or None


if __name__ == "__main__":
    import sys

    slug = sys.argv[1] if len(sys.argv) > 1 else "demo"
    p = load_profile(slug)
    validate_profile(p)
    print(f"Loaded profile: {p['display_name']} ({p['id']})")
    print("Promotion URL:", p.get("promotion_url") or "-")
