from contextlib import contextmanager
from copy import deepcopy

from .errors import (
    DuplicateIdError,
    InvalidReferenceError,
    NotFoundError,
    TransactionError,
    TransactionInProgressError,
)
from .log import getLogger
from .model import cleanMetadata, clearingPatch, metadataChange
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

IMPLICIT_TRANSACTION = "implicit"


class GraphListener:

    """Base class for objects that observe the mutations of a Graph.

    Every mutation happens inside a transaction. A listener first receives
    transactionStarted(), then one operationPerformed() call per atomic
    operation, and finally either transactionEnded() or, when the transaction
    failed, transactionRolledBack(). In the latter case the graph has already
    been restored to its state from before the transaction started.
    """

    def transactionStarted(self, transactionId, info):
        pass

    def operationPerformed(self, operation):
        pass

    def transactionEnded(self, transactionId):
        pass

    def transactionRolledBack(self, transactionId):
        pass


class _Transaction:

    def __init__(self, transactionId, info):
        self.id = transactionId
        self.info = info
        self.operations = []


class Graph:

    """A Graph holds a flow-based program: nodes (component instances),
    edges between node ports, initial values bound to ports, named groups of
    nodes, exported ports and a mapping of graph properties.

        >>> g = Graph()
        >>> g.addNode("Read", "ReadFile")
        >>> g.addNode("Show", "Output")
        >>> g.addEdge("Read", "out", "Show", "in")
        >>> [node.id for node in g.nodes]
        ['Read', 'Show']

    Every mutation is described by an operation (see the operations module)
    that listeners, most notably a Journal, receive. A mutation either fully
    succeeds, or raises a GraphError before touching anything.

    Mutations are grouped into transactions. Mutations outside an explicit
    transaction get a transaction of their own. Explicit transactions are
    best handled with the transaction() context manager:

        >>> with g.transaction("cleanup", title="Remove the reader"):
        ...     g.removeNode("Read")
        ...
        >>> [node.id for node in g.nodes]
        ['Show']
        >>> g.edges
        []

    Removing a node also removes its edges, initials and exported ports, in
    the same transaction. Group memberships are kept.
    """

    def __init__(self, name=""):
        self.name = name
        self.nodes = []
        self.edges = []
        self.initials = []
        self.groups = []
        self.inports = {}
        self.outports = {}
        self.properties = {}
        self._listeners = []
        self._transaction = None

    def __repr__(self):
        return (f"{self.__class__.__name__}(name={self.name!r}, nodes={len(self.nodes)}, "
                f"edges={len(self.edges)}, initials={len(self.initials)})")

    # Listeners

    def addListener(self, listener):
        self._listeners.append(listener)

    def removeListener(self, listener):
        self._listeners.remove(listener)

    def _notify(self, method, *args):
        for listener in list(self._listeners):
            getattr(listener, method)(*args)

    # Queries

    def getNode(self, nodeId):
        for node in self.nodes:
            if node.id == nodeId:
                return node
        return None

    def indexOfNode(self, nodeId):
        for index, node in enumerate(self.nodes):
            if node.id == nodeId:
                return index
        raise NotFoundError(f"no such node: {nodeId!r}")

    def getEdge(self, sourceNode, sourcePort, targetNode, targetPort):
        key = (sourceNode, sourcePort, targetNode, targetPort)
        for edge in self.edges:
            if edge.key == key:
                return edge
        return None

    def indexOfEdge(self, sourceNode, sourcePort, targetNode, targetPort):
        key = (sourceNode, sourcePort, targetNode, targetPort)
        for index, edge in enumerate(self.edges):
            if edge.key == key:
                return index
        raise NotFoundError(f"no such edge: {key!r}")

    def getInitials(self, targetNode, targetPort):
        return [initial for initial in self.initials
                if (initial.targetNode, initial.targetPort) == (targetNode, targetPort)]

    def getGroup(self, name):
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def indexOfGroup(self, name):
        for index, group in enumerate(self.groups):
            if group.name == name:
                return index
        raise NotFoundError(f"no such group: {name!r}")

    def exportedPorts(self, kind):
        if kind == "inport":
            return self.inports
        elif kind == "outport":
            return self.outports
        raise ValueError(f"unknown exported port kind: {kind!r}")

    def isEmpty(self):
        return not (self.nodes or self.edges or self.initials or self.groups or
                    self.inports or self.outports or self.properties)

    def buildOperations(self):
        """Return the list of operations that build the current state of the
        graph, starting from an empty graph.
        """
        operations = []
        if self.properties:
            operations.append(SetGraphMetadata(clearingPatch(self.properties),
                                               deepcopy(self.properties)))
        for node in self.nodes:
            operations.append(AddNode(node.id, node.component, deepcopy(node.metadata)))
        for edge in self.edges:
            operations.append(AddEdge(*edge.key, metadata=deepcopy(edge.metadata)))
        for initial in self.initials:
            operations.append(AddInitial(deepcopy(initial.data), initial.targetNode,
                                         initial.targetPort, deepcopy(initial.metadata)))
        for group in self.groups:
            operations.append(AddGroup(group.name, tuple(group.nodes), deepcopy(group.metadata)))
        for kind in ("inport", "outport"):
            for port in self.exportedPorts(kind).values():
                operations.append(AddExportedPort(kind, port.publicName, port.process,
                                                  port.port, deepcopy(port.metadata)))
        return operations

    # Transactions

    @property
    def inTransaction(self):
        return self._transaction is not None

    @property
    def currentTransactionId(self):
        return self._transaction.id if self._transaction is not None else None

    @contextmanager
    def transaction(self, transactionId, **info):
        """Returns a context manager that handles a startTransaction/endTransaction
        pair conveniently. If an exception occurs, the changes made within the
        transaction are rolled back, and the exception is re-raised.
        """
        self.startTransaction(transactionId, **info)
        try:
            yield
        except Exception:
            self.rollbackTransaction()
            raise
        else:
            self.endTransaction(transactionId)

    def startTransaction(self, transactionId, **info):
        """Start an explicit transaction. All mutations until the matching
        endTransaction() call are recorded as one unit. Keyword arguments form
        the info dict associated with the transaction.

        Transactions do not nest: this raises TransactionInProgressError if a
        transaction is already open.
        """
        if self._transaction is not None:
            raise TransactionInProgressError(
                f"can't start {transactionId!r}: transaction {self._transaction.id!r} is in progress")
        self._beginTransaction(transactionId, info)

    def endTransaction(self, transactionId):
        if self._transaction is None:
            raise TransactionError(f"can't end {transactionId!r}: no transaction in progress")
        if self._transaction.id != transactionId:
            raise TransactionError(
                f"can't end {transactionId!r}: transaction {self._transaction.id!r} is in progress")
        self._finishTransaction()

    def rollbackTransaction(self):
        """Roll back the changes made within the current transaction, and
        discard it.
        """
        if self._transaction is None:
            raise TransactionError("can't roll back: no transaction in progress")
        transaction = self._transaction
        self._transaction = None
        for operation in inverseOperations(transaction.operations):
            operation.applyTo(self)
        logger.debug("transaction rolled back", transactionId=transaction.id,
                     operations=len(transaction.operations))
        self._notify("transactionRolledBack", transaction.id)

    def _beginTransaction(self, transactionId, info):
        self._transaction = _Transaction(transactionId, info)
        self._notify("transactionStarted", transactionId, info)

    def _finishTransaction(self):
        transaction = self._transaction
        self._transaction = None
        self._notify("transactionEnded", transaction.id)

    @contextmanager
    def _mutation(self):
        # Mutations issued outside an explicit transaction get an implicit one.
        # Nested mutations (removeNode -> removeEdge) join the open transaction.
        implicit = self._transaction is None
        if implicit:
            self._beginTransaction(IMPLICIT_TRANSACTION, {})
        try:
            yield
        except Exception:
            if implicit:
                self.rollbackTransaction()
            raise
        else:
            if implicit:
                self._finishTransaction()

    def _perform(self, operation):
        operation.applyTo(self)
        self._transaction.operations.append(operation)
        self._notify("operationPerformed", operation)

    def applyOperations(self, operations, transactionId, **info):
        """Apply previously recorded operations as a single transaction, and
        notify the listeners about it.
        """
        if self._transaction is not None:
            raise TransactionInProgressError(
                f"can't apply operations: transaction {self._transaction.id!r} is in progress")
        with self.transaction(transactionId, **info):
            for operation in operations:
                self._perform(operation)

    # Nodes

    def addNode(self, nodeId, component, metadata=None):
        if self.getNode(nodeId) is not None:
            raise DuplicateIdError(f"node already exists: {nodeId!r}")
        with self._mutation():
            self._perform(AddNode(nodeId, component, cleanMetadata(metadata)))

    def removeNode(self, nodeId):
        """Remove a node, along with its edges, initials and exported ports."""
        index = self.indexOfNode(nodeId)
        node = self.nodes[index]
        with self._mutation():
            for edge in [edge for edge in self.edges if edge.references(nodeId)]:
                self.removeEdge(*edge.key)
            for port in dict.fromkeys(initial.targetPort for initial in self.initials
                                      if initial.targetNode == nodeId):
                self.removeInitial(nodeId, port)
            for kind in ("inport", "outport"):
                for port in list(self.exportedPorts(kind).values()):
                    if port.process == nodeId:
                        self._removeExportedPort(kind, port.publicName)
            self.setNodeMetadata(nodeId, clearingPatch(node.metadata))
            self._perform(RemoveNode(nodeId, node.component, deepcopy(node.metadata),
                                     self.indexOfNode(nodeId)))

    def setNodeMetadata(self, nodeId, metadata):
        node = self.nodes[self.indexOfNode(nodeId)]
        before, after = metadataChange(node.metadata, metadata)
        with self._mutation():
            self._perform(SetNodeMetadata(nodeId, before, after))

    # Edges

    def _checkNodeReference(self, nodeId):
        if self.getNode(nodeId) is None:
            raise InvalidReferenceError(f"no such node: {nodeId!r}")

    def addEdge(self, sourceNode, sourcePort, targetNode, targetPort, metadata=None):
        self._checkNodeReference(sourceNode)
        self._checkNodeReference(targetNode)
        if self.getEdge(sourceNode, sourcePort, targetNode, targetPort) is not None:
            raise DuplicateIdError(
                f"edge already exists: {sourceNode} {sourcePort} -> {targetPort} {targetNode}")
        with self._mutation():
            self._perform(AddEdge(sourceNode, sourcePort, targetNode, targetPort,
                                  cleanMetadata(metadata)))

    def removeEdge(self, sourceNode, sourcePort, targetNode, targetPort):
        key = (sourceNode, sourcePort, targetNode, targetPort)
        edge = self.edges[self.indexOfEdge(*key)]
        with self._mutation():
            # Clearing the metadata first keeps it restorable by the
            # SetEdgeMetadata inverse, independently of the RemoveEdge.
            self.setEdgeMetadata(*key, clearingPatch(edge.metadata))
            self._perform(RemoveEdge(*key, metadata=deepcopy(edge.metadata),
                                     index=self.indexOfEdge(*key)))

    def setEdgeMetadata(self, sourceNode, sourcePort, targetNode, targetPort, metadata):
        key = (sourceNode, sourcePort, targetNode, targetPort)
        edge = self.edges[self.indexOfEdge(*key)]
        before, after = metadataChange(edge.metadata, metadata)
        with self._mutation():
            self._perform(SetEdgeMetadata(*key, before=before, after=after))

    # Initials

    def addInitial(self, data, targetNode, targetPort, metadata=None):
        self._checkNodeReference(targetNode)
        with self._mutation():
            self._perform(AddInitial(deepcopy(data), targetNode, targetPort,
                                     cleanMetadata(metadata), len(self.initials)))

    def removeInitial(self, targetNode, targetPort):
        """Remove all initials bound to the given port."""
        if not self.getInitials(targetNode, targetPort):
            raise NotFoundError(f"no initial for port {targetPort!r} of {targetNode!r}")
        with self._mutation():
            for initial in self.getInitials(targetNode, targetPort):
                index = next(i for i, item in enumerate(self.initials) if item is initial)
                self._perform(RemoveInitial(deepcopy(initial.data), targetNode, targetPort,
                                            deepcopy(initial.metadata), index))

    # Groups

    def addGroup(self, name, nodes, metadata=None):
        if self.getGroup(name) is not None:
            raise DuplicateIdError(f"group already exists: {name!r}")
        with self._mutation():
            self._perform(AddGroup(name, tuple(nodes), cleanMetadata(metadata)))

    def removeGroup(self, name):
        index = self.indexOfGroup(name)
        group = self.groups[index]
        with self._mutation():
            self._perform(RemoveGroup(name, tuple(group.nodes), deepcopy(group.metadata), index))

    def setGroupMetadata(self, name, metadata):
        group = self.groups[self.indexOfGroup(name)]
        before, after = metadataChange(group.metadata, metadata)
        with self._mutation():
            self._perform(SetGroupMetadata(name, before, after))

    # Graph properties

    def setGraphMetadata(self, properties):
        before, after = metadataChange(self.properties, properties)
        with self._mutation():
            self._perform(SetGraphMetadata(before, after))

    # Exported ports

    def addInport(self, publicName, process, port, metadata=None):
        self._addExportedPort("inport", publicName, process, port, metadata)

    def removeInport(self, publicName):
        self._removeExportedPort("inport", publicName)

    def setInportMetadata(self, publicName, metadata):
        self._setExportedPortMetadata("inport", publicName, metadata)

    def addOutport(self, publicName, process, port, metadata=None):
        self._addExportedPort("outport", publicName, process, port, metadata)

    def removeOutport(self, publicName):
        self._removeExportedPort("outport", publicName)

    def setOutportMetadata(self, publicName, metadata):
        self._setExportedPortMetadata("outport", publicName, metadata)

    def _getExportedPort(self, kind, publicName):
        ports = self.exportedPorts(kind)
        if publicName not in ports:
            raise NotFoundError(f"no such {kind}: {publicName!r}")
        return ports[publicName]

    def _addExportedPort(self, kind, publicName, process, port, metadata):
        if publicName in self.exportedPorts(kind):
            raise DuplicateIdError(f"{kind} already exists: {publicName!r}")
        self._checkNodeReference(process)
        with self._mutation():
            self._perform(AddExportedPort(kind, publicName, process, port, cleanMetadata(metadata)))

    def _removeExportedPort(self, kind, publicName):
        exported = self._getExportedPort(kind, publicName)
        with self._mutation():
            self._perform(RemoveExportedPort(kind, publicName, exported.process, exported.port,
                                             deepcopy(exported.metadata)))

    def _setExportedPortMetadata(self, kind, publicName, metadata):
        exported = self._getExportedPort(kind, publicName)
        before, after = metadataChange(exported.metadata, metadata)
        with self._mutation():
            self._perform(SetExportedPortMetadata(kind, publicName, before, after))
