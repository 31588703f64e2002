"""
Flowmap - collaborative process mapping.

Canvas core: entity store, graph projection, selection, mutation gateway
and detail panel bindings. The NiceGUI page lives in app.py.
"""

__version__ = "0.3.0"
