from studiosync.lifecycle.manager import LifecycleManager
from studiosync.lifecycle.ownership import OWNERSHIP, SOFT_DELETABLE, Dependent, dependents_of

__all__ = ["LifecycleManager", "OWNERSHIP", "SOFT_DELETABLE", "Dependent", "dependents_of"]
