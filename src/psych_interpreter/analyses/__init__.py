"""
Built-in analysis kinds.

Each subpackage implements one AnalysisKind and exposes ``KIND`` and
``HANDLERS`` from its ``handlers`` module; AnalysisRegistry.discover() picks
them up automatically.
"""
