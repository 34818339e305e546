from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class ChatTask(BaseModel):
    """
    Backend-neutral chat request handed to an adapter.

    The relay builds one per session; adapters translate it into their
    own wire payload.
    """
    model_id: str
    messages: List[Dict[str, Any]]
    timeout_seconds: float = 300.0
    # Backend sampling options (e.g. {"temperature": 0.2}); omitted when None
    options: Optional[Dict[str, Any]] = None
