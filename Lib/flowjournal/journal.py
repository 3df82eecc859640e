from dataclasses import dataclass, field
from functools import singledispatch

from .errors import GraphError, TransactionInProgressError
from .graph import GraphListener
from .log import getLogger
from .operations import (
    AddEdge,
    AddExportedPort,
    AddGroup,
    AddInitial,
    AddNode,
    RemoveEdge,
    RemoveExportedPort,
    RemoveGroup,
    RemoveInitial,
    RemoveNode,
    SetEdgeMetadata,
    SetExportedPortMetadata,
    SetGraphMetadata,
    SetGroupMetadata,
    SetNodeMetadata,
    inverseOperations,
)


logger = getLogger(__name__)

INITIAL_TRANSACTION = "initial"


class JournalError(Exception):
    pass


class RevisionOutOfRangeError(JournalError):
    pass


class JournalConsistencyError(JournalError):
    pass


@dataclass(frozen=True)
class TransactionEntry:

    """A TransactionEntry is the record of one transaction:

    - revision: the revision number this transaction produced
    - transactionId: the id the transaction was started with
    - operations: the atomic operations performed, in order
    - info: the keyword arguments passed to startTransaction()
    """

    revision: int
    transactionId: str
    operations: tuple = ()
    info: dict = field(default_factory=dict)

    def inverseOperations(self):
        return inverseOperations(self.operations)


class JournalStore:

    """The ordered sequence of recorded transactions, indexed by revision."""

    def __init__(self):
        self._entries = []

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def lastRevision(self):
        return len(self._entries) - 1

    def append(self, entry):
        assert entry.revision == len(self._entries), "revisions must be contiguous"
        self._entries.append(entry)

    def get(self, revision):
        if not 0 <= revision < len(self._entries):
            raise RevisionOutOfRangeError(
                f"revision {revision} not in range 0..{self.lastRevision}")
        return self._entries[revision]

    def entries(self, fromRevision=0, toRevision=None):
        """Return the entries with fromRevision <= revision < toRevision."""
        if toRevision is None:
            toRevision = len(self._entries)
        return self._entries[max(fromRevision, 0):max(toRevision, 0)]

    def truncate(self, revision):
        """Discard all entries above `revision`."""
        del self._entries[revision + 1:]


class Journal(GraphListener):

    """A Journal records every transaction performed on a Graph, and can move
    the graph back and forth through the recorded history.

        >>> from flowjournal.graph import Graph
        >>> g = Graph()
        >>> j = Journal(g)
        >>> j.store.lastRevision
        0

    Revision 0 is the state of the graph at the time the journal was
    attached. Every transaction adds one revision; a mutation outside an
    explicit transaction is a transaction of its own:

        >>> g.addNode("Foo", "Bar")
        >>> g.addNode("Baz", "Foo")
        >>> with g.transaction("connect", title="Connect Foo to Baz"):
        ...     g.addEdge("Foo", "out", "Baz", "in")
        ...     g.addInitial(42, "Foo", "in")
        ...
        >>> j.store.lastRevision
        3

    Undo and redo act on whole transactions:

        >>> j.undoInfo()
        {'title': 'Connect Foo to Baz'}
        >>> j.undo()
        >>> len(g.edges), len(g.initials)
        (0, 0)
        >>> j.redo()
        >>> len(g.edges), len(g.initials)
        (1, 1)

    moveToRevision() jumps to any recorded revision:

        >>> j.moveToRevision(0)
        >>> g.nodes
        []
        >>> j.moveToRevision(j.store.lastRevision)
        >>> j.toPrettyString(3).splitlines()
        ['>>> 3: connect', 'Foo out -> in Baz', "'42' -> in Foo", '<<< 3: connect']

    Journal() has an optional argument called `changeMonitor`, which should
    be a callable taking one positional argument. It is called with the tuple
    of operations applied to the graph, both for every transaction that gets
    recorded and for every replay step of undo(), redo() or moveToRevision().
    """

    def __init__(self, graph, changeMonitor=None):
        self.graph = graph
        self.store = JournalStore()
        self.currentRevision = 0
        self._changeMonitor = changeMonitor
        self._pending = None  # (transactionId, info, operations)
        self._replaying = False
        if graph.inTransaction:
            raise TransactionInProgressError("can't attach a journal during a transaction")
        self.store.append(TransactionEntry(0, INITIAL_TRANSACTION, tuple(graph.buildOperations())))
        graph.addListener(self)

    def close(self):
        """Stop recording the changes of the graph."""
        self.graph.removeListener(self)

    # Recording

    def transactionStarted(self, transactionId, info):
        if self._replaying:
            return
        self._pending = (transactionId, dict(info), [])

    def operationPerformed(self, operation):
        if self._replaying:
            return
        assert self._pending is not None, "operation performed outside of a transaction"
        self._pending[2].append(operation)

    def transactionRolledBack(self, transactionId):
        if self._replaying:
            return
        self._pending = None

    def transactionEnded(self, transactionId):
        if self._replaying:
            return
        assert self._pending is not None
        transactionId, info, operations = self._pending
        self._pending = None
        if not operations:
            return
        if self.currentRevision < self.store.lastRevision:
            logger.debug("history truncated", fromRevision=self.currentRevision + 1,
                         toRevision=self.store.lastRevision)
            self.store.truncate(self.currentRevision)
        entry = TransactionEntry(self.store.lastRevision + 1, transactionId, tuple(operations), info)
        self.store.append(entry)
        self.currentRevision = entry.revision
        logger.debug("transaction recorded", revision=entry.revision,
                     transactionId=transactionId, operations=len(operations))
        if self._changeMonitor is not None:
            self._changeMonitor(entry.operations)

    # Replay

    def canUndo(self):
        return self.currentRevision > 0

    def canRedo(self):
        return self.currentRevision < self.store.lastRevision

    def undoInfo(self):
        """Return the info dict of the transaction that undo() would revert,
        or None if there is nothing to undo.
        """
        if self.canUndo():
            return self.store.get(self.currentRevision).info
        else:
            return None

    def redoInfo(self):
        """Return the info dict of the transaction that redo() would
        re-apply, or None if there is nothing to redo.
        """
        if self.canRedo():
            return self.store.get(self.currentRevision + 1).info
        else:
            return None

    def undo(self):
        """Revert the most recent transaction. Does nothing at revision 0."""
        if self.canUndo():
            self.moveToRevision(self.currentRevision - 1)

    def redo(self):
        """Re-apply the next transaction. Does nothing at the last revision."""
        if self.canRedo():
            self.moveToRevision(self.currentRevision + 1)

    def moveToRevision(self, revision):
        """Change the graph to its state at `revision`. The target revision is
        clamped to the recorded range.
        """
        if self.graph.inTransaction:
            raise TransactionInProgressError("can't change revision in a transaction")
        revision = min(max(revision, 0), self.store.lastRevision)
        if revision == self.currentRevision:
            return
        logger.debug("moved to revision", fromRevision=self.currentRevision, toRevision=revision)
        if revision > self.currentRevision:
            for entry in self.store.entries(self.currentRevision + 1, revision + 1):
                self._replay(entry, entry.operations)
                self.currentRevision = entry.revision
        else:
            for entry in reversed(self.store.entries(revision + 1, self.currentRevision + 1)):
                self._replay(entry, entry.inverseOperations())
                self.currentRevision = entry.revision - 1

    def _replay(self, entry, operations):
        self._replaying = True
        try:
            self.graph.applyOperations(operations, entry.transactionId, **entry.info)
        except GraphError as e:
            logger.error("replay failed", revision=entry.revision,
                         transactionId=entry.transactionId, error=str(e))
            raise JournalConsistencyError(
                f"can't replay revision {entry.revision} ({entry.transactionId}): {e}") from e
        finally:
            self._replaying = False
        if self._changeMonitor is not None:
            self._changeMonitor(tuple(operations))

    # Pretty printing

    def toPrettyString(self, fromRevision=0, toRevision=None):
        """Return a human readable transcript of the transactions with
        fromRevision <= revision < toRevision.
        """
        lines = []
        for entry in self.store.entries(fromRevision, toRevision):
            lines.append(f">>> {entry.revision}: {entry.transactionId}")
            lines.extend(formatOperation(operation) for operation in entry.operations)
            lines.append(f"<<< {entry.revision}: {entry.transactionId}")
        return "\n".join(lines)


def _edgeString(operation, arrow):
    return (f"{operation.sourceNode} {operation.sourcePort} {arrow} "
            f"{operation.targetPort} {operation.targetNode}")


def _portKindLabel(operation):
    return operation.kind.upper()


@singledispatch
def formatOperation(operation):
    """Return the one-line transcript rendering of `operation`.

    Initial data is rendered with str() between single quotes, whatever its
    type, so 42 and "42" both appear as '42', and True as 'True'.
    """
    raise TypeError(f"can't format {operation!r}")


@formatOperation.register(AddNode)
def _(operation):
    return f"{operation.id}({operation.component})"


@formatOperation.register(RemoveNode)
def _(operation):
    return f"DEL {operation.id}({operation.component})"


@formatOperation.register(SetNodeMetadata)
def _(operation):
    return f"META {operation.id}"


@formatOperation.register(AddEdge)
def _(operation):
    return _edgeString(operation, "->")


@formatOperation.register(RemoveEdge)
def _(operation):
    return _edgeString(operation, "-X>")


@formatOperation.register(SetEdgeMetadata)
def _(operation):
    return "META " + _edgeString(operation, "->")


@formatOperation.register(AddInitial)
def _(operation):
    return f"'{operation.data}' -> {operation.targetPort} {operation.targetNode}"


@formatOperation.register(RemoveInitial)
def _(operation):
    return f"'{operation.data}' -X> {operation.targetPort} {operation.targetNode}"


@formatOperation.register(AddGroup)
def _(operation):
    return f"GROUP {operation.name}"


@formatOperation.register(RemoveGroup)
def _(operation):
    return f"DEL GROUP {operation.name}"


@formatOperation.register(SetGroupMetadata)
def _(operation):
    return f"META GROUP {operation.name}"


@formatOperation.register(SetGraphMetadata)
def _(operation):
    return "PROPERTIES"


@formatOperation.register(AddExportedPort)
def _(operation):
    return f"{_portKindLabel(operation)} {operation.publicName}"


@formatOperation.register(RemoveExportedPort)
def _(operation):
    return f"DEL {_portKindLabel(operation)} {operation.publicName}"


@formatOperation.register(SetExportedPortMetadata)
def _(operation):
    return f"META {_portKindLabel(operation)} {operation.publicName}"
