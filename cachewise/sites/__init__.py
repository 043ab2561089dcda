"""
cachewise — Cache Sites

Declarative cache operations attached to methods, and the machinery that
runs them: key builder, descriptor builder, executors and the dispatcher.
"""

from .builder import DescriptorBuilder, method_identity
from .declarations import CacheSite, KeyParam, MultiOptions, OperationKind, ReturnKey, normalize_key_params
from .descriptor import (
    Assigned,
    KeyComponent,
    MultiSettings,
    NoUpdate,
    OperationDescriptor,
    ParamUpdate,
    ParamValues,
    ReturnListOfIds,
    ReturnValue,
    ReturnValueUpdate,
)
from .dispatcher import SiteDispatcher
from .invocation import Invocation
from .keys import KeyBuilder
from .multi import MultiCacheCoordinator
from .single import SingleCacheExecutor

__all__ = [
    # Declarations
    "CacheSite",
    "KeyParam",
    "ReturnKey",
    "MultiOptions",
    "OperationKind",
    "normalize_key_params",
    # Descriptors
    "OperationDescriptor",
    "KeyComponent",
    "ParamValues",
    "ReturnValue",
    "ReturnListOfIds",
    "Assigned",
    "ReturnValueUpdate",
    "ParamUpdate",
    "NoUpdate",
    "MultiSettings",
    "DescriptorBuilder",
    "method_identity",
    # Execution
    "Invocation",
    "KeyBuilder",
    "SingleCacheExecutor",
    "MultiCacheCoordinator",
    "SiteDispatcher",
]
