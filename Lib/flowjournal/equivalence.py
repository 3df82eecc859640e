def _sameItems(itemsA, itemsB):
    # Multiset comparison for unhashable items (metadata dicts, initial data).
    remaining = list(itemsB)
    if len(remaining) != len(itemsA):
        return False
    for item in itemsA:
        for index, other in enumerate(remaining):
            if item == other:
                del remaining[index]
                break
        else:
            return False
    return True


def _groupValue(group):
    return (group.name, frozenset(group.nodes), group.metadata)


def equivalent(graphA, graphB):
    """Return True if both graphs have the same structure: the same nodes,
    edges, initials, groups, exported ports and properties. The order of the
    items within their containers is not significant, nor is the order of the
    nodes of a group.
    """
    if graphA is graphB:
        return True
    nodesA = {node.id: (node.component, node.metadata) for node in graphA.nodes}
    nodesB = {node.id: (node.component, node.metadata) for node in graphB.nodes}
    if nodesA != nodesB:
        return False
    if not _sameItems(graphA.edges, graphB.edges):
        return False
    if not _sameItems(graphA.initials, graphB.initials):
        return False
    if not _sameItems([_groupValue(g) for g in graphA.groups], [_groupValue(g) for g in graphB.groups]):
        return False
    return (graphA.inports == graphB.inports and
            graphA.outports == graphB.outports and
            graphA.properties == graphB.properties)
