from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

# Fields that never leave the server, whoever is looking.
PRIVATE_FIELDS = ("deck", "recentIntents")


def project_table(document: Mapping[str, Any], viewer_uid: Optional[str]) -> Dict[str, Any]:
    """Copy of a table document as `viewer_uid` may see it.

    The deck is dropped, and every hand is blanked unless it belongs to the
    viewer or has been revealed. Hand size stays visible as `handCount`.
    """
    view = deepcopy(dict(document))
    for key in PRIVATE_FIELDS:
        view.pop(key, None)
    config = view.get("config")
    if isinstance(config, dict):
        config.pop("passwordHash", None)
        config["hasPassword"] = bool(document.get("config", {}).get("passwordHash"))
    for seat in view.get("seats") or []:
        if not seat:
            continue
        hand = seat.get("hand") or []
        seat["handCount"] = len(hand)
        if seat.get("uid") != viewer_uid and not seat.get("handRevealed"):
            seat["hand"] = []
    return view
