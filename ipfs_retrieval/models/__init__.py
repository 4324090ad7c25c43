from ipfs_retrieval.models.payload import Payload
from ipfs_retrieval.models.state import Failed
from ipfs_retrieval.models.state import Idle
from ipfs_retrieval.models.state import Loading
from ipfs_retrieval.models.state import Notification
from ipfs_retrieval.models.state import NotificationStatus
from ipfs_retrieval.models.state import RetrievalState
from ipfs_retrieval.models.state import Succeeded
from ipfs_retrieval.models.view import SessionView


__all__ = [
    "Payload",
    "Failed",
    "Idle",
    "Loading",
    "Notification",
    "NotificationStatus",
    "RetrievalState",
    "Succeeded",
    "SessionView",
]
