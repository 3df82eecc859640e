from .log import getLogger
from .model import replacementPatch


logger = getLogger(__name__)

MERGE_TRANSACTION = "merge"


def mergeResolveTheirs(target, source):
    """Change `target` so that it becomes equivalent to `source`. Wherever the
    two graphs disagree, `source` wins.

    The changes are made through the regular mutation methods of `target`, so
    a journal attached to it records them. If no transaction is in progress
    on `target`, the merge is wrapped in a transaction of its own, so that it
    produces a single revision which one undo() reverts.
    """
    if target.inTransaction:
        _merge(target, source)
    else:
        with target.transaction(MERGE_TRANSACTION):
            _merge(target, source)


def _merge(target, source):
    # Nodes go first: removing a node takes its edges, initials and exported
    # ports along, and everything added afterwards may refer to new nodes.
    changes = _mergeNodes(target, source)
    changes += _mergeEdges(target, source)
    changes += _mergeInitials(target, source)
    changes += _mergeExportedPorts(target, source, "inport")
    changes += _mergeExportedPorts(target, source, "outport")
    changes += _mergeGroups(target, source)
    changes += _mergeProperties(target, source)
    logger.debug("merge computed", changes=changes)


def _mergeNodes(target, source):
    changes = 0
    sourceNodes = {node.id: node for node in source.nodes}
    for node in list(target.nodes):
        theirs = sourceNodes.get(node.id)
        if theirs is None or theirs.component != node.component:
            target.removeNode(node.id)
            changes += 1
    for theirs in source.nodes:
        node = target.getNode(theirs.id)
        if node is None:
            target.addNode(theirs.id, theirs.component, theirs.metadata)
            changes += 1
        elif node.metadata != theirs.metadata:
            target.setNodeMetadata(node.id, replacementPatch(node.metadata, theirs.metadata))
            changes += 1
    return changes


def _mergeEdges(target, source):
    changes = 0
    sourceEdges = {edge.key: edge for edge in source.edges}
    for edge in list(target.edges):
        if edge.key not in sourceEdges:
            target.removeEdge(*edge.key)
            changes += 1
    for theirs in source.edges:
        edge = target.getEdge(*theirs.key)
        if edge is None:
            target.addEdge(*theirs.key, metadata=theirs.metadata)
            changes += 1
        elif edge.metadata != theirs.metadata:
            target.setEdgeMetadata(*theirs.key, replacementPatch(edge.metadata, theirs.metadata))
            changes += 1
    return changes


def _initialValues(graph, targetNode, targetPort):
    return [(initial.data, initial.metadata) for initial in graph.getInitials(targetNode, targetPort)]


def _mergeInitials(target, source):
    # Initials are compared per port: if the values bound to a port differ
    # in any way, the port gets the initials of `source`.
    changes = 0
    ports = [(initial.targetNode, initial.targetPort) for initial in target.initials]
    ports += [(initial.targetNode, initial.targetPort) for initial in source.initials]
    for targetNode, targetPort in dict.fromkeys(ports):
        ours = _initialValues(target, targetNode, targetPort)
        theirs = _initialValues(source, targetNode, targetPort)
        if ours == theirs:
            continue
        if ours:
            target.removeInitial(targetNode, targetPort)
            changes += 1
        for data, metadata in theirs:
            target.addInitial(data, targetNode, targetPort, metadata)
            changes += 1
    return changes


def _mergeExportedPorts(target, source, kind):
    changes = 0
    ours = target.exportedPorts(kind)
    theirs = source.exportedPorts(kind)
    remove = {"inport": target.removeInport, "outport": target.removeOutport}[kind]
    add = {"inport": target.addInport, "outport": target.addOutport}[kind]
    setMetadata = {"inport": target.setInportMetadata, "outport": target.setOutportMetadata}[kind]
    for publicName, port in list(ours.items()):
        other = theirs.get(publicName)
        if other is None or (other.process, other.port) != (port.process, port.port):
            remove(publicName)
            changes += 1
    for publicName, other in theirs.items():
        port = ours.get(publicName)
        if port is None:
            add(publicName, other.process, other.port, other.metadata)
            changes += 1
        elif port.metadata != other.metadata:
            setMetadata(publicName, replacementPatch(port.metadata, other.metadata))
            changes += 1
    return changes


def _mergeGroups(target, source):
    changes = 0
    sourceGroups = {group.name: group for group in source.groups}
    for group in list(target.groups):
        theirs = sourceGroups.get(group.name)
        if theirs is None or set(theirs.nodes) != set(group.nodes):
            target.removeGroup(group.name)
            changes += 1
    for theirs in source.groups:
        group = target.getGroup(theirs.name)
        if group is None:
            target.addGroup(theirs.name, theirs.nodes, theirs.metadata)
            changes += 1
        elif group.metadata != theirs.metadata:
            target.setGroupMetadata(theirs.name, replacementPatch(group.metadata, theirs.metadata))
            changes += 1
    return changes


def _mergeProperties(target, source):
    if target.properties == source.properties:
        return 0
    target.setGraphMetadata(replacementPatch(target.properties, source.properties))
    return 1
