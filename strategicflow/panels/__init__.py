"""
strategicflow.panels: one class per settings panel.

Every panel is built from a PanelContext (gateway, cache, toasts,
capabilities) and is a terminal error handler: reads return QueryResult,
writes return MutationResult, and failures end up as toasts.
"""
