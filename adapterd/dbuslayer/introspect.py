"""Introspection data for adapter objects.

The XML document is generated from the dispatcher's routing table with
xmltodict, so the advertised methods always match what is routed.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

import xmltodict

from adapterd.bt_ref.constants import *
from adapterd.dbuslayer.dispatcher import DispatchEntry

__all__ = ["split_signature", "introspect_xml", "ADAPTER_SIGNALS"]

DOCTYPE = (
    '<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"\n'
    ' "http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">\n'
)

# Change notifications emitted on the adapter interface: (name, signature)
ADAPTER_SIGNALS: Tuple[Tuple[str, str], ...] = (
    (SIG_MINOR_CLASS_CHANGED, "s"),
    (SIG_REMOTE_ALIAS_CHANGED, "ss"),
    (SIG_BONDING_REMOVED, "s"),
)

_CLOSE = {"(": ")", "{": "}"}


def split_signature(signature: str) -> List[str]:
    """Split a type signature into its complete types (``"sas"`` -> ``["s", "as"]``)."""
    types = []
    i = 0
    while i < len(signature):
        start = i
        while signature[i] == "a":
            i += 1
        if signature[i] in _CLOSE:
            depth = 0
            while True:
                c = signature[i]
                if c in "({":
                    depth += 1
                elif c in ")}":
                    depth -= 1
                i += 1
                if depth == 0:
                    break
        else:
            i += 1
        types.append(signature[start:i])
    return types


def _args(signature: str, direction: str = "") -> List[Dict[str, str]]:
    args = []
    for t in split_signature(signature):
        arg = {"@type": t}
        if direction:
            arg["@direction"] = direction
        args.append(arg)
    return args


def _method(entry: DispatchEntry) -> Dict[str, Any]:
    method: Dict[str, Any] = {"@name": entry.name}
    args = _args(entry.signature, "in") + _args(entry.out_signature, "out")
    if args:
        method["arg"] = args
    return method


def introspect_xml(entries: Iterable[DispatchEntry], interface: str = ADAPTER_INTERFACE) -> str:
    """Return the introspection document for an adapter object."""
    methods = []
    seen = set()
    for entry in entries:
        key = (entry.name, entry.signature)
        if key in seen:
            continue
        seen.add(key)
        methods.append(_method(entry))

    signals = []
    for name, signature in ADAPTER_SIGNALS:
        signals.append({"@name": name, "arg": _args(signature)})

    document = {
        "node": {
            "interface": [
                {
                    "@name": INTROSPECT_INTERFACE,
                    "method": {
                        "@name": "Introspect",
                        "arg": {"@name": "data", "@type": "s", "@direction": "out"},
                    },
                },
                {"@name": interface, "method": methods, "signal": signals},
            ]
        }
    }
    return DOCTYPE + xmltodict.unparse(document, full_document=False, pretty=True)
