from models.asset import Asset
from models.content import ContentObject
from models.enums import LifecycleState, StateFilter
from models.folder import Folder
from models.quota import Quota, RateWindow

__all__ = [
    "Asset",
    "ContentObject",
    "Folder",
    "LifecycleState",
    "Quota",
    "RateWindow",
    "StateFilter",
]
