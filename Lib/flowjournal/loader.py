"""Conversion between Graph objects and their JSON representation:

    {
        "properties": {"name": "Example"},
        "inports": {"in": {"process": "Foo", "port": "in", "metadata": {}}},
        "outports": {"out": {"process": "Bar", "port": "out", "metadata": {}}},
        "groups": [{"name": "main", "nodes": ["Foo"], "metadata": {}}],
        "processes": {"Foo": {"component": "Bar", "metadata": {}}},
        "connections": [
            {"src": {"process": "Foo", "port": "out"},
             "tgt": {"process": "Bar", "port": "in"}, "metadata": {}},
            {"data": 42, "tgt": {"process": "Foo", "port": "in"}}
        ]
    }

All sections are optional. By default, connections and exported ports that
refer to processes missing from "processes", and repeated connections, are
skipped with a warning. With strict=True they make loading fail.
"""

from collections.abc import Mapping
import json

from .errors import GraphError, GraphLoadError
from .graph import Graph
from .log import getLogger


logger = getLogger(__name__)


def _section(data, key, expectedType):
    value = data.get(key)
    if value is None:
        return expectedType()
    if not isinstance(value, expectedType):
        raise GraphLoadError(f"{key!r} must be a {expectedType.__name__}, got {type(value).__name__}")
    return value


def _endpoint(connection, key):
    endpoint = connection.get(key)
    if not isinstance(endpoint, Mapping) or "process" not in endpoint or "port" not in endpoint:
        raise GraphLoadError(f"connection needs a {key!r} with 'process' and 'port': {connection!r}")
    return endpoint["process"], endpoint["port"]


def _metadata(entry, what):
    metadata = entry.get("metadata")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise GraphLoadError(f"metadata of {what} must be an object, got {type(metadata).__name__}")
    return metadata


def _groupNodes(group):
    nodes = group.get("nodes")
    if nodes is None:
        return []
    if not isinstance(nodes, list) or not all(isinstance(nodeId, str) for nodeId in nodes):
        raise GraphLoadError(f"nodes of group {group['name']!r} must be a list of strings")
    return nodes


def loadJSON(data, strict=False):
    """Build a new Graph from its JSON representation, given either as a
    string or as already decoded data. Raises GraphLoadError if the data is
    malformed.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise GraphLoadError(f"invalid JSON: {e}") from e
    if not isinstance(data, Mapping):
        raise GraphLoadError(f"graph data must be an object, got {type(data).__name__}")

    properties = _section(data, "properties", dict)
    graph = Graph(name=properties.get("name", ""))

    def skipOrFail(message, **context):
        if strict:
            raise GraphLoadError(message)
        logger.warning("reference skipped", reason=message, **context)

    try:
        # The graph has no listeners yet, so this transaction is only there
        # to load everything as a single unit.
        with graph.transaction("load"):
            if properties:
                graph.setGraphMetadata(properties)
            for nodeId, process in _section(data, "processes", dict).items():
                if not isinstance(process, Mapping) or "component" not in process:
                    raise GraphLoadError(f"process {nodeId!r} needs a 'component'")
                graph.addNode(nodeId, process["component"], _metadata(process, f"process {nodeId!r}"))

            for connection in _section(data, "connections", list):
                if not isinstance(connection, Mapping):
                    raise GraphLoadError(f"connection must be an object: {connection!r}")
                targetNode, targetPort = _endpoint(connection, "tgt")
                if "data" in connection:
                    if graph.getNode(targetNode) is None:
                        skipOrFail(f"initial refers to unknown process {targetNode!r}",
                                   process=targetNode)
                        continue
                    graph.addInitial(connection["data"], targetNode, targetPort,
                                     _metadata(connection, "initial"))
                    continue
                sourceNode, sourcePort = _endpoint(connection, "src")
                missing = [nodeId for nodeId in (sourceNode, targetNode) if graph.getNode(nodeId) is None]
                if missing:
                    skipOrFail(f"connection refers to unknown process {missing[0]!r}",
                               process=missing[0])
                    continue
                if graph.getEdge(sourceNode, sourcePort, targetNode, targetPort) is not None:
                    skipOrFail(f"duplicated connection {sourceNode} {sourcePort} -> {targetPort} {targetNode}",
                               process=sourceNode)
                    continue
                graph.addEdge(sourceNode, sourcePort, targetNode, targetPort,
                              _metadata(connection, "connection"))

            for kind, key in (("inport", "inports"), ("outport", "outports")):
                for publicName, exported in _section(data, key, dict).items():
                    if not isinstance(exported, Mapping):
                        raise GraphLoadError(f"{kind} {publicName!r} must be an object")
                    process, port = exported.get("process"), exported.get("port")
                    if graph.getNode(process) is None:
                        skipOrFail(f"{kind} {publicName!r} refers to unknown process {process!r}",
                                   process=process)
                        continue
                    add = graph.addInport if kind == "inport" else graph.addOutport
                    add(publicName, process, port, _metadata(exported, f"{kind} {publicName!r}"))

            for group in _section(data, "groups", list):
                if not isinstance(group, Mapping) or "name" not in group:
                    raise GraphLoadError(f"group needs a 'name': {group!r}")
                graph.addGroup(group["name"], _groupNodes(group), _metadata(group, f"group {group['name']!r}"))
    except GraphLoadError:
        raise
    except GraphError as e:
        raise GraphLoadError(str(e)) from e
    return graph


def loadDocument(serialized, callback, strict=False):
    """Load a graph and pass the outcome to `callback(error, graph)`. Errors
    caused by malformed input are passed as `error` (with `graph` None)
    instead of being raised.
    """
    try:
        graph = loadJSON(serialized, strict=strict)
    except GraphLoadError as e:
        callback(e, None)
    else:
        callback(None, graph)


def toJSON(graph):
    """Return the JSON-compatible representation of `graph`, in the format
    accepted by loadJSON().
    """
    connections = []
    for edge in graph.edges:
        connection = {
            "src": {"process": edge.sourceNode, "port": edge.sourcePort},
            "tgt": {"process": edge.targetNode, "port": edge.targetPort},
        }
        if edge.metadata:
            connection["metadata"] = dict(edge.metadata)
        connections.append(connection)
    for initial in graph.initials:
        connection = {
            "data": initial.data,
            "tgt": {"process": initial.targetNode, "port": initial.targetPort},
        }
        if initial.metadata:
            connection["metadata"] = dict(initial.metadata)
        connections.append(connection)

    def exportedPorts(kind):
        return {
            port.publicName: {"process": port.process, "port": port.port, "metadata": dict(port.metadata)}
            for port in graph.exportedPorts(kind).values()
        }

    return {
        "properties": dict(graph.properties),
        "inports": exportedPorts("inport"),
        "outports": exportedPorts("outport"),
        "groups": [
            {"name": group.name, "nodes": list(group.nodes), "metadata": dict(group.metadata)}
            for group in graph.groups
        ],
        "processes": {
            node.id: {"component": node.component, "metadata": dict(node.metadata)}
            for node in graph.nodes
        },
        "connections": connections,
    }
