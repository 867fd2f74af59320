"""Cloud side (account documents, device registry, sync reconciler)"""
from .account import CloudAccount
from .registry import DeviceRegistry, compute_effective_online
from .sync import SyncReconciler

__all__ = [
    "CloudAccount",
    "DeviceRegistry", "compute_effective_online",
    "SyncReconciler",
]
