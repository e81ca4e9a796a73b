"""Public package surface of ``lib_hierarchical_config``.

Exports the configuration object and its factories, the interpolation
registry with the built-in lookups, the node tree and expression engine, the
list delimiter handlers, and the error taxonomy. Everything listed in
``__all__`` is considered stable.
"""

from __future__ import annotations

from .adapters.lookups.constant import ConstantLookup
from .adapters.lookups.default import (
    Base64DecoderLookup,
    Base64EncoderLookup,
    DateLookup,
    EnvironmentLookup,
    FunctionLookup,
    LocalHostLookup,
    MapLookup,
    SystemPropertiesLookup,
    UrlDecoderLookup,
    UrlEncoderLookup,
    default_prefix_lookups,
    set_system_property,
)
from .application.combine import combine_all, override_combine, union_combine
from .application.interpolator import Interpolator
from .application.node_model import NodeModel
from .application.ports import KeyEngine, Lookup
from .core import ConfigurationLookup, HierarchicalConfiguration, LayerLoadError, from_mapping, read_config
from .domain.errors import (
    ConfigError,
    ConversionError,
    InterpolationCycleError,
    InvalidExpression,
    InvalidFormat,
    MissingKeyError,
    NotFound,
    ValidationError,
)
from .domain.expression import DEFAULT_ENGINE, Expression, ExpressionEngine, ExpressionSymbols, QueryResult
from .domain.list_delimiters import (
    DEFAULT_LIST_DELIMITER_HANDLER,
    DefaultListDelimiterHandler,
    DisabledListDelimiterHandler,
    LegacyListDelimiterHandler,
)
from .domain.node import Node, NodeBuilder
from .domain.xpath import XPathExpressionEngine
from .observability import bind_trace_id, get_logger

__all__ = [
    "Base64DecoderLookup",
    "Base64EncoderLookup",
    "ConfigError",
    "ConfigurationLookup",
    "ConstantLookup",
    "ConversionError",
    "DEFAULT_ENGINE",
    "DEFAULT_LIST_DELIMITER_HANDLER",
    "DateLookup",
    "DefaultListDelimiterHandler",
    "DisabledListDelimiterHandler",
    "EnvironmentLookup",
    "Expression",
    "ExpressionEngine",
    "ExpressionSymbols",
    "FunctionLookup",
    "HierarchicalConfiguration",
    "InterpolationCycleError",
    "Interpolator",
    "InvalidExpression",
    "InvalidFormat",
    "KeyEngine",
    "LayerLoadError",
    "LegacyListDelimiterHandler",
    "LocalHostLookup",
    "Lookup",
    "MapLookup",
    "MissingKeyError",
    "Node",
    "NodeBuilder",
    "NodeModel",
    "NotFound",
    "QueryResult",
    "SystemPropertiesLookup",
    "UrlDecoderLookup",
    "UrlEncoderLookup",
    "ValidationError",
    "XPathExpressionEngine",
    "bind_trace_id",
    "combine_all",
    "default_prefix_lookups",
    "from_mapping",
    "get_logger",
    "override_combine",
    "read_config",
    "set_system_property",
    "union_combine",
]
