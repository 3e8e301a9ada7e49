from .shops import Shop
from .auth import SessionToken
from .devices import Device, DocumentSequence
from .slots import SlotBinding
from .customers import CustomerProfile
from .pos import PosTransaction

__all__ = [
    'Shop', 'SessionToken',
    'Device', 'DocumentSequence',
    'SlotBinding',
    'CustomerProfile',
    'PosTransaction',
]
