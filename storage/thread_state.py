"""
Mail threading state: the last sent Message-ID and the accumulated References chain.
"""

import json
import os
from typing import Any, Dict, List, Optional


class ThreadState:
    def __init__(self, message_id: Optional[str] = None, references: Optional[List[str]] = None):
        self.message_id = message_id
        self.references = list(references or [])

    def reply_headers(self) -> Dict[str, str]:
        """In-Reply-To/References for the next message, empty when nothing was sent yet."""
        if not self.message_id:
            return {}
        refs = self.references or [self.message_id]
        return {"In-Reply-To": self.message_id, "References": " ".join(refs)}

    def advance(self, message_id: str) -> "ThreadState":
        return ThreadState(message_id=message_id, references=self.references + [message_id])

    def to_dict(self) -> Dict[str, Any]:
        return {"messageId": self.message_id, "references": self.references}


def load_thread_state(path: str) -> ThreadState:
    """Read the state file. A missing or unreadable file is an empty state."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError):
        return ThreadState()
    if not isinstance(data, dict):
        return ThreadState()
    refs = data.get("references") or []
    return ThreadState(message_id=data.get("messageId"), references=[r for r in refs if isinstance(r, str)])


def save_thread_state(path: str, state: ThreadState):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(state.to_dict(), fh, indent=2)
