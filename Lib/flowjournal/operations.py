from dataclasses import dataclass, field
import typing

from .errors import DuplicateIdError, InvalidReferenceError, NotFoundError
from .model import (
    Edge,
    ExportedPort,
    Group,
    Initial,
    Node,
    cleanMetadata,
    patchMetadata,
)


# Operation classes
#
# An operation is a value describing one atomic structural change to a Graph.
# Each operation carries enough prior state to construct its exact inverse,
# and knows how to apply itself to a graph. Applying an operation does not
# notify anybody: the Graph takes care of that in Graph._perform().

@dataclass(frozen=True)
class Operation:

    def inverse(self):
        raise NotImplementedError

    def applyTo(self, graph):
        raise NotImplementedError


def _insert(items, index, item):
    if index is None or index >= len(items):
        items.append(item)
    else:
        items.insert(index, item)


def _requireNode(graph, nodeId):
    if graph.getNode(nodeId) is None:
        raise InvalidReferenceError(f"no such node: {nodeId!r}")


# Nodes

@dataclass(frozen=True)
class AddNode(Operation):

    id: str
    component: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None  # None appends

    def inverse(self):
        return RemoveNode(self.id, self.component, self.metadata, self.index)

    def applyTo(self, graph):
        if graph.getNode(self.id) is not None:
            raise DuplicateIdError(f"node already exists: {self.id!r}")
        _insert(graph.nodes, self.index, Node(self.id, self.component, cleanMetadata(self.metadata)))


@dataclass(frozen=True)
class RemoveNode(Operation):

    id: str
    component: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    def inverse(self):
        return AddNode(self.id, self.component, self.metadata, self.index)

    def applyTo(self, graph):
        del graph.nodes[graph.indexOfNode(self.id)]


@dataclass(frozen=True)
class SetNodeMetadata(Operation):

    id: str
    before: dict
    after: dict

    def inverse(self):
        return SetNodeMetadata(self.id, self.after, self.before)

    def applyTo(self, graph):
        node = graph.nodes[graph.indexOfNode(self.id)]
        patchMetadata(node.metadata, self.after)


# Edges

@dataclass(frozen=True)
class AddEdge(Operation):

    sourceNode: str
    sourcePort: str
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    @property
    def key(self):
        return (self.sourceNode, self.sourcePort, self.targetNode, self.targetPort)

    def inverse(self):
        return RemoveEdge(*self.key, metadata=self.metadata, index=self.index)

    def applyTo(self, graph):
        _requireNode(graph, self.sourceNode)
        _requireNode(graph, self.targetNode)
        if graph.getEdge(*self.key) is not None:
            raise DuplicateIdError(f"edge already exists: {self.key!r}")
        _insert(graph.edges, self.index, Edge(*self.key, cleanMetadata(self.metadata)))


@dataclass(frozen=True)
class RemoveEdge(Operation):

    sourceNode: str
    sourcePort: str
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    @property
    def key(self):
        return (self.sourceNode, self.sourcePort, self.targetNode, self.targetPort)

    def inverse(self):
        return AddEdge(*self.key, metadata=self.metadata, index=self.index)

    def applyTo(self, graph):
        del graph.edges[graph.indexOfEdge(*self.key)]


@dataclass(frozen=True)
class SetEdgeMetadata(Operation):

    sourceNode: str
    sourcePort: str
    targetNode: str
    targetPort: str
    before: dict
    after: dict

    @property
    def key(self):
        return (self.sourceNode, self.sourcePort, self.targetNode, self.targetPort)

    def inverse(self):
        return SetEdgeMetadata(*self.key, before=self.after, after=self.before)

    def applyTo(self, graph):
        edge = graph.edges[graph.indexOfEdge(*self.key)]
        patchMetadata(edge.metadata, self.after)


# Initials

@dataclass(frozen=True)
class AddInitial(Operation):

    data: typing.Any
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    def inverse(self):
        return RemoveInitial(self.data, self.targetNode, self.targetPort, self.metadata, self.index)

    def applyTo(self, graph):
        _requireNode(graph, self.targetNode)
        initial = Initial(self.data, self.targetNode, self.targetPort, cleanMetadata(self.metadata))
        _insert(graph.initials, self.index, initial)


@dataclass(frozen=True)
class RemoveInitial(Operation):

    data: typing.Any
    targetNode: str
    targetPort: str
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    def inverse(self):
        return AddInitial(self.data, self.targetNode, self.targetPort, self.metadata, self.index)

    def _matches(self, initial):
        return (initial.matches(self.data, self.targetNode, self.targetPort)
                and initial.metadata == cleanMetadata(self.metadata))

    def applyTo(self, graph):
        # Several initials may carry the same data on the same port: prefer
        # the recorded position, then the most recently added match.
        initials = graph.initials
        if self.index is not None and self.index < len(initials) and self._matches(initials[self.index]):
            del initials[self.index]
            return
        for index in reversed(range(len(initials))):
            if self._matches(initials[index]):
                del initials[index]
                return
        raise NotFoundError(f"no such initial: {self.data!r} -> {self.targetNode}.{self.targetPort}")


# Groups

@dataclass(frozen=True)
class AddGroup(Operation):

    name: str
    nodes: tuple = ()
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    def inverse(self):
        return RemoveGroup(self.name, self.nodes, self.metadata, self.index)

    def applyTo(self, graph):
        if graph.getGroup(self.name) is not None:
            raise DuplicateIdError(f"group already exists: {self.name!r}")
        _insert(graph.groups, self.index, Group(self.name, list(self.nodes), cleanMetadata(self.metadata)))


@dataclass(frozen=True)
class RemoveGroup(Operation):

    name: str
    nodes: tuple = ()
    metadata: dict = field(default_factory=dict)
    index: typing.Optional[int] = None

    def inverse(self):
        return AddGroup(self.name, self.nodes, self.metadata, self.index)

    def applyTo(self, graph):
        del graph.groups[graph.indexOfGroup(self.name)]


@dataclass(frozen=True)
class SetGroupMetadata(Operation):

    name: str
    before: dict
    after: dict

    def inverse(self):
        return SetGroupMetadata(self.name, self.after, self.before)

    def applyTo(self, graph):
        group = graph.groups[graph.indexOfGroup(self.name)]
        patchMetadata(group.metadata, self.after)


# Graph properties

@dataclass(frozen=True)
class SetGraphMetadata(Operation):

    before: dict
    after: dict

    def inverse(self):
        return SetGraphMetadata(self.after, self.before)

    def applyTo(self, graph):
        patchMetadata(graph.properties, self.after)


# Exported ports. `kind` is either "inport" or "outport".

@dataclass(frozen=True)
class AddExportedPort(Operation):

    kind: str
    publicName: str
    process: str
    port: str
    metadata: dict = field(default_factory=dict)

    def inverse(self):
        return RemoveExportedPort(self.kind, self.publicName, self.process, self.port, self.metadata)

    def applyTo(self, graph):
        ports = graph.exportedPorts(self.kind)
        if self.publicName in ports:
            raise DuplicateIdError(f"{self.kind} already exists: {self.publicName!r}")
        _requireNode(graph, self.process)
        ports[self.publicName] = ExportedPort(self.publicName, self.process, self.port,
                                              cleanMetadata(self.metadata))


@dataclass(frozen=True)
class RemoveExportedPort(Operation):

    kind: str
    publicName: str
    process: str
    port: str
    metadata: dict = field(default_factory=dict)

    def inverse(self):
        return AddExportedPort(self.kind, self.publicName, self.process, self.port, self.metadata)

    def applyTo(self, graph):
        ports = graph.exportedPorts(self.kind)
        if self.publicName not in ports:
            raise NotFoundError(f"no such {self.kind}: {self.publicName!r}")
        del ports[self.publicName]


@dataclass(frozen=True)
class SetExportedPortMetadata(Operation):

    kind: str
    publicName: str
    before: dict
    after: dict

    def inverse(self):
        return SetExportedPortMetadata(self.kind, self.publicName, self.after, self.before)

    def applyTo(self, graph):
        ports = graph.exportedPorts(self.kind)
        if self.publicName not in ports:
            raise NotFoundError(f"no such {self.kind}: {self.publicName!r}")
        patchMetadata(ports[self.publicName].metadata, self.after)


def inverseOperations(operations):
    """Return the operations that undo `operations`, in the order in which
    they must be applied.
    """
    return [operation.inverse() for operation in reversed(operations)]
