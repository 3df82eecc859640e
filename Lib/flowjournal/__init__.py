"""# flowjournal

A versioned document model for flow-based programming graphs.

A flow-based program is a directed graph: nodes are instances of components,
edges connect an output port of one node to an input port of another, and
initials bind literal values to input ports. Nodes can be collected in named
groups, some ports are exported as the ports of the graph itself, and the
graph has a mapping of properties.

The main idea is that every change to such a graph can be described as a
small, invertible operation value. If the graph reports every change it makes
in that form, a journal can record them in a completely generic way, and use
the recordings to move the graph to any earlier or later state, for example
to implement undo.

The graph does not need any awareness of the journal: the journal simply
listens to the operations the graph performs. Changes are grouped into
transactions, and every transaction becomes one revision in the journal:

    >>> from flowjournal import Graph, Journal
    >>> g = Graph()
    >>> j = Journal(g)
    >>> g.addNode("Foo", "Bar")
    >>> g.addNode("Baz", "Foo")
    >>> g.addEdge("Foo", "out", "Baz", "in")
    >>> j.store.lastRevision
    3

Removing a node also removes everything connected to it, within the same
transaction, so a single undo brings it all back:

    >>> g.removeNode("Baz")
    >>> g.edges
    []
    >>> j.undo()
    >>> [node.id for node in g.nodes]
    ['Foo', 'Baz']
    >>> len(g.edges)
    1

Two independently edited copies of a graph can be reconciled with
mergeResolveTheirs(), which records the merge as one transaction:

    >>> from flowjournal import equivalent, mergeResolveTheirs
    >>> other = Graph()
    >>> other.addNode("Foo", "Bar", {"label": "Start"})
    >>> mergeResolveTheirs(g, other)
    >>> equivalent(g, other)
    True
    >>> j.undo()
    >>> [node.id for node in g.nodes]
    ['Foo', 'Baz']

Graphs can be loaded from and saved to a JSON representation, see
flowjournal.loader.
"""

from .errors import (
    DuplicateIdError,
    GraphError,
    GraphLoadError,
    InvalidReferenceError,
    NotFoundError,
    TransactionError,
    TransactionInProgressError,
)
from .equivalence import equivalent
from .graph import Graph, GraphListener
from .journal import (
    Journal,
    JournalConsistencyError,
    JournalError,
    RevisionOutOfRangeError,
    TransactionEntry,
)
from .loader import loadDocument, loadJSON, toJSON
from .merge import mergeResolveTheirs

__all__ = [
    "DuplicateIdError",
    "Graph",
    "GraphError",
    "GraphListener",
    "GraphLoadError",
    "InvalidReferenceError",
    "Journal",
    "JournalConsistencyError",
    "JournalError",
    "NotFoundError",
    "RevisionOutOfRangeError",
    "TransactionEntry",
    "TransactionError",
    "TransactionInProgressError",
    "equivalent",
    "loadDocument",
    "loadJSON",
    "mergeResolveTheirs",
    "toJSON",
]

try:
    from ._version import version as __version__
except ImportError:
    __version__ = "<unknown>"
